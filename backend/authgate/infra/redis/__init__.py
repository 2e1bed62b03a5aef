"""Redis-backed refresh-session and OTP stores."""
