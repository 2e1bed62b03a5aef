"""PyJWT-backed token codec."""
