"""Verification token generation."""

import secrets

TOKEN_BYTES = 30


def generate_verification_token() -> str:
    """Return a fresh, URL-safe, 40 character verification secret."""
    return secrets.token_urlsafe(TOKEN_BYTES)
