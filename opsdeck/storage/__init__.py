"""
Persistence adapters for the dashboard document.

Each store keeps the whole Document in one place (a local file, a WebDAV
file or an S3 object) behind the same read/write contract; CachedStore puts
a local file in front of a remote one.
"""

from .base import DocumentStore, ReadResult, load_document, serialize_document
from .cached import CachedStore
from .errors import BackendError, ConcurrencyConflict, CorruptDocument, StoreError
from .factory import (
    BackendConfig,
    LocalBackend,
    ObjectStorageBackend,
    WebDavBackend,
    backend_from_settings,
    build_store,
    open_backend,
)
from .local import LocalJsonStore
from .object_store import ObjectJsonStore
from .webdav import WebDavJsonStore

__all__ = [
    "BackendConfig",
    "BackendError",
    "CachedStore",
    "ConcurrencyConflict",
    "CorruptDocument",
    "DocumentStore",
    "LocalBackend",
    "LocalJsonStore",
    "ObjectJsonStore",
    "ObjectStorageBackend",
    "ReadResult",
    "StoreError",
    "WebDavBackend",
    "WebDavJsonStore",
    "backend_from_settings",
    "build_store",
    "load_document",
    "open_backend",
    "serialize_document",
]
