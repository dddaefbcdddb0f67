import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from sitepulse.core.config import settings

API_KEY_PREFIX = "site_"
API_KEY_DISPLAY_CHARS = 10


def generate_api_key() -> str:
    """Generate a new site API key."""
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_api_key(api_key: str) -> str:
    """SHA-256 hex digest of an API key. Only the digest is persisted."""
    return hashlib.sha256(api_key.encode()).hexdigest()


def verify_api_key(api_key: str, key_hash: str | None) -> bool:
    """Constant-time comparison of a presented key against a stored digest."""
    if not key_hash:
        return False
    return hmac.compare_digest(hash_api_key(api_key), key_hash)


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> tuple[str, str]:
    """Create a dashboard access token.

    Production tokens come from the identity service sharing ``SECRET_KEY``;
    this is used by tests and the local seed script.

    Returns:
        tuple[str, str]: (token, jti)
    """
    jti = str(uuid.uuid4())
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "type": "access",
        "jti": jti,
    }
    token = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return token, jti


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None if invalid."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        return payload
    except jwt.PyJWTError:
        return None


def owner_id_from_token(token: str) -> str | None:
    """Return the ``sub`` claim of a valid access token, or None."""
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
