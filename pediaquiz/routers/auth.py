"""
Authentication router.
Handles registration, login, token refresh, logout, profile and admin-role grants.
Access tokens carry the is_admin claim; refresh tokens are stored in DB as a
digest with an expiry, rotated on every refresh and cleared on logout.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from pediaquiz.auth.security import (
    create_access_token, create_refresh_token, decode_token, digest_refresh_token,
    hash_password, refresh_token_expired, user_claims, verify_password,
)
from pediaquiz.context import AppContext, get_context
from pediaquiz.database.database import get_db
from pediaquiz.database.models import User

router = APIRouter(prefix="/auth", tags=["auth"])

_bearer = HTTPBearer(auto_error=False)


# ─── Schemas ───────────────────────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class AdminRoleRequest(BaseModel):
    email: EmailStr
    is_admin: bool = True


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    is_admin: bool
    is_active: bool
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


# ─── Dependencies ──────────────────────────────────────────────────────────────

def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    ctx: AppContext = Depends(get_context),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials, ctx.settings.jwt_secret_key)
    if payload is None or payload.get("sub") is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return payload


def get_current_user(claims: dict = Depends(get_token_claims), db: Session = Depends(get_db)) -> User:
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()  # noqa: E712
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def require_admin(claims: dict = Depends(get_token_claims)) -> dict:
    """Admin endpoints trust the token's is_admin claim; no DB lookup."""
    if not claims.get("is_admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return claims


def _issue_tokens(user: User, ctx: AppContext, db: Session) -> TokenResponse:
    access_token = create_access_token(
        user_claims(user),
        ctx.settings.jwt_secret_key,
        expire_minutes=ctx.settings.access_token_expire_minutes,
    )
    issued = create_refresh_token(ctx.settings.refresh_token_expire_days)
    user.refresh_token = issued.digest
    user.refresh_token_expires_at = issued.expires_at
    db.commit()
    return TokenResponse(
        access_token=access_token,
        refresh_token=issued.token,
        user=UserOut.model_validate(user),
    )


# ─── Routes ────────────────────────────────────────────────────────────────────

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Create a learner account and log it in."""
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=request.email,
        hashed_password=hash_password(request.password),
        full_name=request.full_name,
        is_admin=False,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return _issue_tokens(user, ctx, db)


@router.post("/login", response_model=TokenResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Authenticate and return access + refresh tokens."""
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return _issue_tokens(user, ctx, db)


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    request: RefreshRequest,
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_context),
):
    """Exchange a valid refresh token for new access + refresh tokens."""
    digest = digest_refresh_token(request.refresh_token)
    user = db.query(User).filter(User.refresh_token == digest).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    if refresh_token_expired(user.refresh_token_expires_at):
        user.refresh_token = None
        user.refresh_token_expires_at = None
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return _issue_tokens(user, ctx, db)


@router.post("/logout")
def logout(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Clear refresh token (server-side logout)."""
    user.refresh_token = None
    user.refresh_token_expires_at = None
    db.commit()
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/admin-role", response_model=UserOut)
def set_admin_role(
    request: AdminRoleRequest,
    _: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Grant (or revoke) the admin claim. Takes effect on the user's next
    login or refresh, when a new access token is issued.
    """
    user = db.query(User).filter(User.email == request.email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No user with email {request.email}")
    user.is_admin = request.is_admin
    db.commit()
    db.refresh(user)
    return user
