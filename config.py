# config.py
# Process-wide settings read from the environment (and .env when present)
import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ConfigError(RuntimeError):
    """Raised when the service cannot be configured to start"""


class Settings(BaseModel):
    jwt_secret: str = Field(..., min_length=1)
    database_url: str = "sqlite:///./cityfix.db"
    upload_dir: str = "uploads"
    max_upload_bytes: int = 5 * 1024 * 1024  # 5MB
    token_expire_hours: int = 24
    bcrypt_rounds: int = 10

    # Bootstrap admin account, re-ensured on every startup
    admin_email: str = "admin@cityfix.com"
    admin_password: str = "admin123"
    admin_name: str = "Admin"

    cors_origins: List[str] = ["*"]
    port: int = 5000


def _normalize_database_url(url: str) -> str:
    # Render/Heroku hand out 'postgres://' which SQLAlchemy no longer accepts
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def load_settings() -> Settings:
    """Build Settings from the environment, failing fast without JWT_SECRET"""
    load_dotenv()

    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ConfigError("JWT_SECRET must be set")

    origins = os.getenv("CORS_ORIGINS", "*")

    return Settings(
        jwt_secret=secret,
        database_url=_normalize_database_url(
            os.getenv("DATABASE_URL", "sqlite:///./cityfix.db")
        ),
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)),
        token_expire_hours=int(os.getenv("TOKEN_EXPIRE_HOURS", 24)),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", 10)),
        admin_email=os.getenv("ADMIN_EMAIL", "admin@cityfix.com"),
        admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
        admin_name=os.getenv("ADMIN_NAME", "Admin"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        port=int(os.getenv("PORT", 5000)),
    )
