"""Security utilities: password hashing, JWTs and the admin key check."""

import hmac
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from pointgate.core.config import get_settings

settings = get_settings()

# ── Password hashing (Argon2) ────────────────────────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


# ── Admin API key ─────────────────────────────────────────────

def check_admin_key(candidate: str | None) -> bool:
    """Constant-time comparison against the configured admin key.

    An unset key never matches, so a fresh deployment has no admin access
    until ADMIN_API_KEY is configured.
    """
    if not settings.admin_api_key or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), settings.admin_api_key.encode())


# ── JWT ───────────────────────────────────────────────────────

def create_jwt(subject: str, tenant_id: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    payload = {
        "sub": subject,
        "tid": tenant_id,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jose.JWTError on failure."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
