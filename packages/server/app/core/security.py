"""
Password hashing and secret generation (bcrypt + ``secrets``).
"""

from __future__ import annotations

import secrets

import bcrypt

from app.core.config import get_settings

settings = get_settings()

ADMIN_KEY_PREFIX = "th_ak_"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# Organization admin keys
# ---------------------------------------------------------------------------

def generate_admin_key() -> str:
    """Generate a new organization admin key (plaintext, shown once)."""
    return f"{ADMIN_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_admin_key(key: str) -> str:
    return bcrypt.hashpw(key.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_admin_key(key: str, hashed: str) -> bool:
    """Verify an admin key against its bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(key.encode(), hashed.encode())
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Random tokens
# ---------------------------------------------------------------------------

def generate_invite_token() -> str:
    """Single-use team invitation secret."""
    return secrets.token_urlsafe(32)


def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)
