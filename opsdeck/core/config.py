"""
Configuration helpers for the opsdeck backend.

Settings are read once from environment variables so that routers, stores
and scripts never fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

DATA_BACKENDS = ("local", "webdav", "s3")


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    log_level: str
    data_backend: str
    data_path: str
    webdav_url: str
    webdav_username: str
    webdav_password: str
    webdav_file_path: str
    s3_bucket: str
    s3_object_key: str
    s3_region: str
    s3_endpoint_url: str
    s3_access_key_id: str
    s3_secret_access_key: str
    cache_enabled: bool
    cache_path: str
    background_sync: bool
    sync_interval_seconds: int
    http_timeout_seconds: float
    strict_documents: bool


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    backend = (os.getenv("DATA_BACKEND") or "local").strip().lower()
    if backend not in DATA_BACKENDS:
        backend = "local"

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        data_backend=backend,
        data_path=(os.getenv("DATA_PATH") or "").strip() or "./data.json",
        webdav_url=(os.getenv("WEBDAV_URL") or "").strip().rstrip("/"),
        webdav_username=(os.getenv("WEBDAV_USERNAME") or "").strip(),
        webdav_password=(os.getenv("WEBDAV_PASSWORD") or "").strip(),
        webdav_file_path=(os.getenv("WEBDAV_FILE_PATH") or "").strip() or "/opsdeck/data.json",
        s3_bucket=(os.getenv("S3_BUCKET") or "").strip(),
        s3_object_key=(os.getenv("S3_OBJECT_KEY") or "").strip() or "opsdeck/data.json",
        s3_region=(os.getenv("S3_REGION") or "").strip(),
        s3_endpoint_url=(os.getenv("S3_ENDPOINT_URL") or "").strip(),
        s3_access_key_id=(os.getenv("S3_ACCESS_KEY_ID") or "").strip(),
        s3_secret_access_key=(os.getenv("S3_SECRET_ACCESS_KEY") or "").strip(),
        cache_enabled=_bool(os.getenv("CACHE_ENABLED"), True),
        cache_path=(os.getenv("CACHE_PATH") or "").strip() or "./data.cache.json",
        background_sync=_bool(os.getenv("BACKGROUND_SYNC"), True),
        sync_interval_seconds=max(1, _int(os.getenv("SYNC_INTERVAL_SECONDS", "300"), 300)),
        http_timeout_seconds=_float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"), 15.0),
        strict_documents=_bool(os.getenv("STRICT_DOCUMENTS"), False),
    )
