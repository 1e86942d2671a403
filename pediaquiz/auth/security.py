"""
Authentication utilities.

Access tokens are short-lived HS256 JWTs carrying the is_admin claim.
Refresh tokens are opaque and single-use: the client holds the token, the
users table holds only its SHA-256 digest and an expiry, and every refresh
rotates both.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import bcrypt as _bcrypt
from jose import JWTError, jwt

ALGORITHM = "HS256"
REFRESH_TOKEN_BYTES = 48
DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS = 7


# ─── Password helpers ─────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return _bcrypt.hashpw(password.encode("utf-8"), _bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return _bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ─── Access tokens ────────────────────────────────────────────────────────────

def user_claims(user) -> dict:
    """Claims for a user's access token. `is_admin` is what admin endpoints trust."""
    return {"sub": str(user.id), "email": user.email, "is_admin": bool(user.is_admin)}


def create_access_token(claims: dict, secret_key: str, expire_minutes: int = 30) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_token(token: str, secret_key: str) -> Optional[dict]:
    """Decoded claims, or None if the token is malformed, forged or expired."""
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except (JWTError, ValueError, TypeError):
        return None


# ─── Refresh tokens ───────────────────────────────────────────────────────────

class RefreshToken(NamedTuple):
    token: str            # returned to the client once
    digest: str           # stored on the user row
    expires_at: datetime


def digest_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_refresh_token(expire_days: int = DEFAULT_REFRESH_TOKEN_EXPIRE_DAYS) -> RefreshToken:
    token = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
    return RefreshToken(
        token=token,
        digest=digest_refresh_token(token),
        expires_at=datetime.now(timezone.utc) + timedelta(days=expire_days),
    )


def refresh_token_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A missing expiry counts as expired. Naive datetimes (SQLite) are read as UTC."""
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= (now or datetime.now(timezone.utc))
