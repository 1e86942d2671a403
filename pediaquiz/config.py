"""
Runtime configuration.
Everything is read from the environment (optionally via a .env file) into a
frozen Settings object that is handed to AppContext at startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _default_database_url() -> str:
    user = os.getenv("POSTGRES_USER", "pediaquiz_user")
    password = os.getenv("POSTGRES_PASSWORD", "pediaquiz_pass")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    name = os.getenv("POSTGRES_DB", "pediaquiz")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret_key: str = "pediaquiz-secret-key-change-in-production"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7

    # Generative backend (any OpenAI-compatible endpoint)
    openai_api_key: Optional[str] = None
    ai_base_url: Optional[str] = None
    gpt_model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    ocr_vision_fallback: bool = False

    # Object storage + uploads
    storage_root: str = "storage"
    max_upload_size: int = 52428800  # 50MB
    event_token: Optional[str] = None

    # Pipeline
    stage_timeout_seconds: float = 540.0
    approval_max_attempts: int = 3

    # Seeded admin account
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


def load_settings() -> Settings:
    """Build Settings from the process environment."""
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL") or _default_database_url(),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", Settings.jwt_secret_key),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30)),
        refresh_token_expire_days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7)),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        ai_base_url=os.getenv("AI_BASE_URL") or None,
        gpt_model=os.getenv("GPT_MODEL", Settings.gpt_model),
        vision_model=os.getenv("VISION_MODEL", Settings.vision_model),
        ocr_vision_fallback=_env_bool("OCR_VISION_FALLBACK"),
        storage_root=os.getenv("STORAGE_ROOT", Settings.storage_root),
        max_upload_size=int(os.getenv("MAX_UPLOAD_SIZE", Settings.max_upload_size)),
        event_token=os.getenv("EVENT_TOKEN") or None,
        stage_timeout_seconds=float(os.getenv("STAGE_TIMEOUT_SECONDS", 540)),
        approval_max_attempts=int(os.getenv("APPROVAL_MAX_ATTEMPTS", 3)),
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
    )
