"""Application configuration using Pydantic Settings."""

from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Built once at startup by ``create_app`` and handed to every component that
    needs a secret or an external-service handle. Instances are frozen.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    APP_NAME: str = "LMS API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    RELOAD: bool = True

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "lms"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    # JWT
    SECRET_KEY: str = Field(default="change-this-secret-key-in-production")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60  # 7 days

    # Session cookie
    COOKIE_NAME: str = "token"
    COOKIE_MAX_AGE: int = 7 * 24 * 60 * 60  # seconds
    COOKIE_SECURE: bool = True

    # Passwords
    BCRYPT_ROUNDS: int = 10
    PASSWORD_MIN_LENGTH: int = 8
    RESET_TOKEN_EXPIRE_MINUTES: int = 15

    # File Upload
    UPLOAD_TMP_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 50 * 1024 * 1024  # 50MB
    ALLOWED_UPLOAD_EXTENSIONS: Union[str, List[str]] = ["jpg", "jpeg", "webp", "png", "mp4"]

    # Media storage
    MEDIA_STORAGE_TYPE: str = "local"  # "local" or "s3"
    MEDIA_STORAGE_DIR: str = "media"
    MEDIA_BASE_URL: str = "http://localhost:5000/media"
    MEDIA_FOLDER: str = "lms"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"
    S3_BUCKET_NAME: str = ""
    DEFAULT_AVATAR_URL: str = (
        "https://res.cloudinary.com/du9jzqlpt/image/upload/v1674647316/avatar_drzgxv.jpg"
    )
    DEFAULT_THUMBNAIL_URL: str = "https://placehold.co/600x400?text=Course"

    # Email
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "noreply@lms.local"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Monitoring
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "production"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    @field_validator("ALLOWED_UPLOAD_EXTENSIONS", mode="before")
    @classmethod
    def parse_extensions(cls, v):
        """Parse comma-separated extensions."""
        if isinstance(v, str):
            v = v.split(",")
        return [ext.strip().lower().lstrip(".") for ext in v if ext.strip()]

    @property
    def reset_url_base(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/reset-password"
