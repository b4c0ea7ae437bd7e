"""
Application configuration management using Pydantic Settings.
All settings can be overridden via environment variables.
"""

from typing import Any, List

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Book Catalog"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Security
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str | None = None  # Falls back to SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 14

    @property
    def REFRESH_KEY(self) -> str:
        """Signing key for refresh tokens."""
        return self.REFRESH_SECRET_KEY or self.SECRET_KEY

    # Password policy
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_REQUIRE_SPECIAL: bool = False

    # Grant ADMIN to the very first registered user, CREATE to everyone after
    FIRST_USER_IS_ADMIN: bool = True

    # Database
    DATABASE_URL: str | None = None  # Optional: Use this if set (e.g., sqlite:///./data/dev.db)
    POSTGRES_SERVER: str | None = None
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str | None = None
    POSTGRES_PASSWORD: str | None = None
    POSTGRES_DB: str | None = None

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Get database URI - supports both SQLite and PostgreSQL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if self.POSTGRES_SERVER and self.POSTGRES_USER and self.POSTGRES_PASSWORD and self.POSTGRES_DB:
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        # Default to SQLite for local dev if nothing is configured
        return "sqlite:///./data/catalog.db"

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.SQLALCHEMY_DATABASE_URI.startswith("sqlite")

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> List[str] | str:
        """Parse CORS origins from string or list."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # File Storage
    FILE_STORAGE_PATH: str = "./data/files"  # Root for book covers and content files
    MAX_UPLOAD_SIZE: int = 50 * 1024 * 1024  # bytes


settings = Settings()  # type: ignore
