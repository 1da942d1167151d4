"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "StudyHub"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Database
    # If database_url_override is set (e.g., for a hosted Postgres with SSL), it takes precedence
    database_url_override: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "studyhub"
    postgres_password: str = ""
    postgres_db: str = "studyhub"

    # Reflect the live schema instead of trusting the declared models.
    # Needed when the bookmarks table only carries one of note_id/subject_id.
    reflect_schema: bool = False

    @computed_field
    @property
    def database_url(self) -> str:
        """Get async database URL. Uses override if provided, otherwise constructs from parts."""
        if self.database_url_override:
            url = self.database_url_override
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            elif url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            # asyncpg rejects query params in the URL; SSL goes through connect_args
            if "?" in url:
                url = url.split("?")[0]
            return url
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @computed_field
    @property
    def database_requires_ssl(self) -> bool:
        """Check if the database connection requires SSL."""
        if self.database_url_override:
            return "sslmode=require" in self.database_url_override or "ssl=require" in self.database_url_override
        return False

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Get sync database URL (for Alembic)."""
        if self.database_url_override:
            url = self.database_url_override
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            elif url.startswith("postgresql+asyncpg://"):
                url = url.replace("postgresql+asyncpg://", "postgresql://", 1)
            return url
        return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # Auth / JWT
    jwt_secret_key: str  # Required - no default, must be set in .env
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Google OAuth
    google_client_id: str

    # Accounts with this email are admins regardless of the is_admin flag
    admin_email: str | None = None

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Cookies
    # Set to true when frontend and backend are on different domains
    cookie_cross_domain: bool = False

    # Note file storage (S3 or any S3-compatible bucket)
    aws_access_key_id: str
    aws_secret_access_key: str
    aws_s3_bucket: str = "notes"
    aws_s3_region: str = "us-east-2"
    aws_s3_endpoint_url: str | None = None  # Set for MinIO/LocalStack (e.g. http://localhost:9000)
    storage_public_base_url: str | None = None  # CDN or public bucket URL; derived from bucket/region if unset

    # Note upload
    max_note_size_bytes: int = 50 * 1024 * 1024  # 50MB

    # Resilient reads
    fetch_max_attempts: int = 3
    fetch_timeout_seconds: float = 5.0
    fetch_timeout_step_seconds: float = 1.0
    fetch_backoff_base_seconds: float = 0.5
    fetch_backoff_factor: float = 2.0

    # Writes get a single short attempt
    write_timeout_seconds: float = 2.0

    # Connectivity / emergency mode
    connectivity_timeout_seconds: float = 2.5
    emergency_failure_threshold: int = 3


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def sanitize_error(error: Exception, *, generic_message: str = "An internal error occurred.") -> str:
    """
    Return a user-safe error message.

    In development, returns the full exception string for debugging.
    In staging/production, returns a generic message to avoid leaking internals.
    """
    settings = get_settings()
    if settings.environment == "development":
        return str(error)
    return generic_message
