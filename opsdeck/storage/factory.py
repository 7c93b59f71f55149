"""
Backend selection.

The configured backend is resolved once at startup into one of three closed
variants, then into a concrete DocumentStore. Remote backends are wrapped in
a CachedStore unless caching is disabled.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from opsdeck.core.config import Settings
from opsdeck.storage.base import DocumentStore
from opsdeck.storage.cached import CachedStore
from opsdeck.storage.local import LocalJsonStore
from opsdeck.storage.object_store import ObjectJsonStore
from opsdeck.storage.webdav import WebDavJsonStore


@dataclass(frozen=True)
class LocalBackend:
    path: str


@dataclass(frozen=True)
class WebDavBackend:
    url: str
    file_path: str
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class ObjectStorageBackend:
    bucket: str
    key: str
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


BackendConfig = Union[LocalBackend, WebDavBackend, ObjectStorageBackend]


def backend_from_settings(settings: Settings) -> BackendConfig:
    if settings.data_backend == "webdav":
        if not settings.webdav_url:
            raise RuntimeError("WEBDAV_URL must be configured to use the webdav backend (DATA_BACKEND=webdav).")
        return WebDavBackend(
            url=settings.webdav_url,
            file_path=settings.webdav_file_path,
            username=settings.webdav_username or None,
            password=settings.webdav_password or None,
        )
    if settings.data_backend == "s3":
        missing = [
            name
            for name, value in (
                ("S3_BUCKET", settings.s3_bucket),
                ("S3_ACCESS_KEY_ID", settings.s3_access_key_id),
                ("S3_SECRET_ACCESS_KEY", settings.s3_secret_access_key),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"{'/'.join(missing)} must be configured to use the s3 backend (DATA_BACKEND=s3).")
        return ObjectStorageBackend(
            bucket=settings.s3_bucket,
            key=settings.s3_object_key,
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
        )
    return LocalBackend(path=settings.data_path)


def open_backend(backend: BackendConfig, *, timeout: float = 15.0, strict: bool = False) -> DocumentStore:
    """Instantiate the leaf store for ``backend`` (no caching)."""
    if isinstance(backend, LocalBackend):
        return LocalJsonStore(backend.path, strict=strict)
    if isinstance(backend, WebDavBackend):
        return WebDavJsonStore(
            backend.url,
            backend.file_path,
            backend.username,
            backend.password,
            timeout=timeout,
            strict=strict,
        )
    if isinstance(backend, ObjectStorageBackend):
        return ObjectJsonStore(
            backend.bucket,
            backend.key,
            region=backend.region,
            endpoint_url=backend.endpoint_url,
            access_key_id=backend.access_key_id,
            secret_access_key=backend.secret_access_key,
            timeout=timeout,
            strict=strict,
        )
    raise TypeError(f"Unsupported backend: {backend!r}")


def build_store(settings: Settings, backend: BackendConfig | None = None) -> DocumentStore:
    """Build the process-wide store described by ``settings``."""
    backend = backend or backend_from_settings(settings)
    store = open_backend(backend, timeout=settings.http_timeout_seconds, strict=settings.strict_documents)
    if isinstance(backend, LocalBackend) or not settings.cache_enabled:
        return store
    return CachedStore(
        store,
        settings.cache_path,
        background_sync=settings.background_sync,
        sync_interval=settings.sync_interval_seconds,
        strict=settings.strict_documents,
    )
