"""SMTP email delivery."""
