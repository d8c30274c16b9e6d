"""
Credential helpers: salted password hashes and opaque session tokens.

Passwords are stored as Argon2 hashes through passlib. Session tokens are
random hex strings kept verbatim on the user row; there is nothing to decode,
a token is valid exactly while it is the one stored for some user.
"""

import logging
import os
import secrets

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# 24 random bytes -> 48 hex characters
TOKEN_BYTES = 24

# Argon2 embeds a per-hash salt; older schemes added here would be rehashed on login
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def is_production_like() -> bool:
    """True when ENVIRONMENT is production or staging (error details are hidden there)."""
    return os.environ.get("ENVIRONMENT", "development").lower() in ("production", "staging")


def hash_password(password: str) -> str:
    """
    Hash a plain-text password for storage.

    Example:
        >>> stored = hash_password("Secret#123")
        >>> stored.startswith("$argon2")
        True
    """
    logger.debug("Hashing password for a new account")
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    """
    Check a login password against the stored hash.

    Args:
        password: Password from the login request
        stored_hash: User.password_hash

    Returns:
        True if they match
    """
    matched = pwd_context.verify(password, stored_hash)
    logger.debug(f"Password check {'passed' if matched else 'failed'}")
    return matched


def generate_token() -> str:
    """Return a fresh opaque bearer token (48 hex characters)."""
    token = secrets.token_hex(TOKEN_BYTES)
    logger.debug("Issued new bearer token")
    return token
