"""Credentials for staff, customers and provisioned guests.

Passwords are stored as bcrypt hashes. Requests authenticate with a signed
access token whose claims are enough to build the requester ``Identity``
without a user lookup.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from support_chat.core.config import settings
from support_chat.core.exceptions import InvalidTokenError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"

# bcrypt ignores everything past this many bytes
BCRYPT_MAX_BYTES = 72


def _bcrypt_input(password: str) -> bytes:
    raw = password.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        return hashlib.sha256(raw).hexdigest().encode("utf-8")
    return raw


def hash_password(password: str) -> str:
    """Hash a password for the users collection."""
    return bcrypt.hashpw(_bcrypt_input(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a login attempt against the stored hash."""
    return bcrypt.checkpw(_bcrypt_input(plain_password), hashed_password.encode("utf-8"))


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign an access token for a user.

    Args:
        data: Identity claims: ``sub`` (user ID), ``role``, ``name``, ``email``
        expires_delta: Lifetime override; defaults to the configured expiry

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)

    claims = {
        **data,
        "exp": issued_at + lifetime,
        "iat": issued_at,
        "jti": str(uuid.uuid4()),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Verify the signature and expiry of a token and return its claims.

    Raises:
        TokenExpiredError: If the token has expired
        InvalidTokenError: If the token is malformed or badly signed
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(message=str(e))


def verify_access_token(token: str) -> dict[str, Any]:
    """Claims of a valid access token (HTTP bearer or socket handshake)."""
    claims = decode_token(token)

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError(message="Invalid token type")

    return claims
