"""
Application settings loaded from environment variables or .env file.

Priority:
  1. Environment variables (always win)
  2. .env file in project root (local dev)
  3. Defaults

When CLERK_SECRET_KEY is not set, the identity directory falls back to an
in-memory directory whose admins are listed in DEV_ADMIN_IDS.

When DEV_SKIP_AUTH=true (only allowed in development), Clerk JWT verification
is bypassed and requests are authenticated via X-Dev-User-ID header.
"""
import logging
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_repo_root = Path(__file__).resolve().parents[3]  # backend/ → project root


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_repo_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    environment: str = "development"
    frontend_base_url: str = "http://localhost:5173"

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    db_host: str = ""
    db_port: int = 5432
    db_name: str = "citycare"
    db_user: str = "postgres"
    db_password: str = ""

    # Local dev overrides (used when ENVIRONMENT=development)
    local_db_host: str = "localhost"
    local_db_port: int = 5433
    local_db_name: str = "citycare_dev"
    local_db_user: str = "postgres"
    local_db_password: str = "localpassword"

    db_pool_size: int = 5
    db_max_overflow: int = 2
    db_echo: bool = False

    # ------------------------------------------------------------------ #
    # Clerk (identity provider + directory)
    # ------------------------------------------------------------------ #
    clerk_secret_key: str = ""
    clerk_api_url: str = "https://api.clerk.com/v1"
    clerk_jwks_url: str = ""
    clerk_issuer: str = ""

    # ------------------------------------------------------------------ #
    # Cloudinary (media uploads)
    # ------------------------------------------------------------------ #
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "citycare"
    upload_max_bytes: int = 10 * 1024 * 1024

    # ------------------------------------------------------------------ #
    # Dev-mode bypass (only honoured when environment == "development")
    # ------------------------------------------------------------------ #
    dev_skip_auth: bool = False
    dev_admin_ids: str = ""  # comma-separated identity ids

    # ------------------------------------------------------------------ #
    # JWKS cache TTL (seconds)
    # ------------------------------------------------------------------ #
    jwks_cache_ttl: int = 86400  # 24 hours

    # ------------------------------------------------------------------ #
    # Listings and statistics
    # ------------------------------------------------------------------ #
    stats_timezone: str = "UTC"
    default_page_size: int = 50
    max_page_size: int = 100
    recent_activity_days: int = 7

    # ------------------------------------------------------------------ #
    # Computed properties
    # ------------------------------------------------------------------ #

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def auth_disabled(self) -> bool:
        """True only when running in development with explicit opt-in."""
        return self.is_development and self.dev_skip_auth

    @property
    def clerk_configured(self) -> bool:
        return bool(self.clerk_secret_key)

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @property
    def jwks_url(self) -> str:
        return self.clerk_jwks_url or f"{self.clerk_api_url.rstrip('/')}/jwks"

    @property
    def dev_admin_id_list(self) -> list[str]:
        return [x.strip() for x in self.dev_admin_ids.split(",") if x.strip()]

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.stats_timezone)

    @property
    def database_url(self) -> str:
        """Async asyncpg URL."""
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"

    @property
    def database_url_sync(self) -> str:
        """Sync psycopg2 URL (Alembic)."""
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    def _resolve_db_credentials(self) -> tuple[str, int, str, str, str]:
        if self.is_development:
            return (
                self.local_db_host,
                self.local_db_port,
                self.local_db_name,
                self.local_db_user,
                self.local_db_password,
            )

        if not self.db_host:
            raise RuntimeError("DB_HOST is not set. Update your .env or the service environment.")

        return self.db_host, self.db_port, self.db_name, self.db_user, self.db_password

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v.lower()

    @field_validator("stats_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"STATS_TIMEZONE {v!r} is not a known IANA zone") from exc
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
