"""Reservation bearer tokens."""

import hashlib
import secrets

TOKEN_BYTES = 32


def generate_token() -> str:
    """256 random bits, hex encoded (64 characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def token_fingerprint(token: str) -> str:
    """Short non-reversible tag for log lines; the token itself is never logged."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
