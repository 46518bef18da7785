"""
Centralized settings for the Reporta backend.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed. Explicit environment
variables always win over the `.env` file.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import os

from dotenv import dotenv_values


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    database_url: str
    public_base_url: str
    map_base_url: str
    http_timeout_seconds: float

    # Edit links
    edit_token_secret: str
    edit_token_ttl_seconds: int

    # Moderation
    admin_phone: Optional[str]
    admin_mod_token: Optional[str]
    moderation_panel_url: str
    terms_url: str

    # WhatsApp Cloud API
    whatsapp_access_token: Optional[str]
    whatsapp_phone_number_id: Optional[str]
    whatsapp_api_version: str
    verify_token: Optional[str]
    delivery_dedup_seconds: int

    # Geocoding / service region
    opencage_api_key: Optional[str]
    geocoder_query_suffix: str
    region_min_lat: float
    region_max_lat: float
    region_min_lon: float
    region_max_lon: float

    # Photo storage
    storage_provider: str
    s3_bucket: str
    s3_region: str
    s3_endpoint: Optional[str]
    s3_access_key_id: Optional[str]
    s3_secret_access_key: Optional[str]
    s3_public_base_url: Optional[str]
    local_storage_dir: str

    # Category catalog override (JSON file)
    categories_file: Optional[str]

    # Optional Telegram channel for moderator alerts
    telegram_bot_token: Optional[str]
    telegram_admin_chat_id: Optional[str]

    # Observability
    sentry_dsn: Optional[str]


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_path = Path(__file__).resolve().parents[1] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}

    public_base_url = _env_lookup("PUBLIC_BASE_URL", env_file, "https://bot.tulumreporta.com").rstrip("/")

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        database_url=_env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./reporta.db"),
        public_base_url=public_base_url,
        map_base_url=_env_lookup("PUBLIC_MAP_BASE_URL", env_file, f"{public_base_url}/map"),
        http_timeout_seconds=float(_env_lookup("HTTP_TIMEOUT_SECONDS", env_file, "10")),
        edit_token_secret=_env_lookup("EDIT_TOKEN_SECRET", env_file, "change-this-secret-in-production"),
        edit_token_ttl_seconds=int(_env_lookup("EDIT_TOKEN_TTL_SECONDS", env_file, str(60 * 60 * 24))),
        admin_phone=_env_lookup("ADMIN_PHONE", env_file),
        admin_mod_token=_env_lookup("ADMIN_MOD_TOKEN", env_file),
        moderation_panel_url=_env_lookup("MODERATION_PANEL_URL", env_file, f"{public_base_url}/admin/reports/pending"),
        terms_url=_env_lookup("TERMS_URL", env_file, "https://www.tulumreporta.com/condiciones.html"),
        whatsapp_access_token=_env_lookup("WHATSAPP_ACCESS_TOKEN", env_file),
        whatsapp_phone_number_id=_env_lookup("WHATSAPP_PHONE_NUMBER_ID", env_file),
        whatsapp_api_version=_env_lookup("WHATSAPP_API_VERSION", env_file, "v20.0"),
        verify_token=_env_lookup("VERIFY_TOKEN", env_file),
        delivery_dedup_seconds=int(_env_lookup("DELIVERY_DEDUP_SECONDS", env_file, "600")),
        opencage_api_key=_env_lookup("OPENCAGE_API_KEY", env_file),
        geocoder_query_suffix=_env_lookup("GEOCODER_QUERY_SUFFIX", env_file, ", Tulum, Quintana Roo"),
        region_min_lat=float(_env_lookup("REGION_MIN_LAT", env_file, "19.776048")),
        region_max_lat=float(_env_lookup("REGION_MAX_LAT", env_file, "20.519093")),
        region_min_lon=float(_env_lookup("REGION_MIN_LON", env_file, "-87.998068")),
        region_max_lon=float(_env_lookup("REGION_MAX_LON", env_file, "-87.299769")),
        storage_provider=_env_lookup("STORAGE_PROVIDER", env_file, "local").lower(),
        s3_bucket=_env_lookup("S3_BUCKET", env_file, "report-photos"),
        s3_region=_env_lookup("S3_REGION", env_file, "us-east-1"),
        s3_endpoint=_env_lookup("S3_ENDPOINT", env_file) or _env_lookup("S3_ENDPOINT_URL", env_file),
        s3_access_key_id=_env_lookup("S3_ACCESS_KEY_ID", env_file) or _env_lookup("S3_ACCESS_KEY", env_file),
        s3_secret_access_key=_env_lookup("S3_SECRET_ACCESS_KEY", env_file) or _env_lookup("S3_SECRET_KEY", env_file),
        s3_public_base_url=_env_lookup("S3_PUBLIC_BASE_URL", env_file),
        local_storage_dir=_env_lookup("LOCAL_STORAGE_DIR", env_file, "./storage"),
        categories_file=_env_lookup("CATEGORIES_FILE", env_file),
        telegram_bot_token=_env_lookup("TELEGRAM_BOT_TOKEN", env_file),
        telegram_admin_chat_id=_env_lookup("TELEGRAM_ADMIN_CHAT_ID", env_file),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
    )


__all__ = ["Settings", "get_settings"]
