# =============================================================================
# Auth Service - Password Hashing, Bearer Tokens, Share Hashes
# =============================================================================
#
# Pure functions for identity management. No FastAPI dependency; used by the
# auth dependency, the auth/share routers, and tests.
#
# DESIGN DECISION: scrypt (hashlib) for passwords. Passwords are low-entropy
# human secrets, so the hash must be slow and salted. Stored
# format: "scrypt$<n>$<r>$<p>$<salt_hex>$<hash_hex>" so parameters can be
# raised later without breaking existing rows.
#
# Bearer tokens are HS256 JWTs (python-jose) carrying the user id in an
# "id" claim plus an expiry.
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from brainvault.config import Settings
from brainvault.errors import AuthError

_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1

SHARE_HASH_LENGTH = 10


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    """Salted scrypt hash in a self-describing string format."""
    salt = secrets.token_bytes(16)
    digest = hashlib.scrypt(
        password.encode(), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P,
    )
    return f"scrypt${_SCRYPT_N}${_SCRYPT_R}${_SCRYPT_P}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str | None) -> bool:
    """Constant-time check of `password` against a hash_password() string."""
    if not stored:
        return False
    try:
        scheme, n, r, p, salt_hex, hash_hex = stored.split("$")
        if scheme != "scrypt":
            return False
        digest = hashlib.scrypt(
            password.encode(),
            salt=bytes.fromhex(salt_hex),
            n=int(n), r=int(r), p=int(p),
        )
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), hash_hex)


# ---------------------------------------------------------------------------
# Bearer Tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: str, settings: Settings) -> str:
    expires = datetime.now(UTC) + timedelta(days=settings.jwt_expire_days)
    return jwt.encode(
        {"id": user_id, "exp": expires},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str, settings: Settings) -> str:
    """
    Return the user id carried by `token`.

    Raises:
        AuthError: Bad signature, expired, or no "id" claim.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthError("Invalid or expired token") from e

    user_id = claims.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError("Invalid or expired token")
    return user_id


# ---------------------------------------------------------------------------
# Share Links
# ---------------------------------------------------------------------------

_SHARE_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def generate_share_hash(length: int = SHARE_HASH_LENGTH) -> str:
    """Random alphanumeric share hash."""
    return "".join(secrets.choice(_SHARE_ALPHABET) for _ in range(length))
