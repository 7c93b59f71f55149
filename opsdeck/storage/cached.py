"""
Local file cache in front of a slow remote store.

Two modes, picked by the ``background_sync`` capability flag:

- long-lived process (``True``): reads and writes only touch the local cache.
  A daemon thread wakes every ``sync_interval`` seconds and, when the cache
  holds unsynced writes, pushes the whole cached document to the remote
  unconditionally (last writer wins).
- ephemeral runtime (``False``): the cache lives in scratch storage and every
  write goes through to the remote within the same call. Remote failures are
  logged, the cache write still counts as success.

The remote never blocks a caller: an unreachable remote at startup leaves the
cache empty, and later remote failures only show up in the logs and in
``status()``.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from opsdeck.core.utils import now_iso
from opsdeck.domain.models import Document
from opsdeck.storage.base import DocumentStore, ReadResult
from opsdeck.storage.errors import StoreError
from opsdeck.storage.local import LocalJsonStore

logger = logging.getLogger(__name__)

SYNC_INTERVAL_SECONDS = 5 * 60


@dataclass
class SyncStatus:
    mode: str
    remote: str
    cache_path: str
    initialized: bool
    dirty: bool
    last_synced_at: Optional[str]
    last_error: Optional[str]


def _scratch_path(cache_path: str | os.PathLike, scratch_dir: str | os.PathLike | None) -> Path:
    path = Path(cache_path)
    if path.is_absolute():
        path = Path(*path.parts[1:])
    return Path(scratch_dir or tempfile.gettempdir()) / path


class CachedStore(DocumentStore):
    name = "cached"

    def __init__(
        self,
        remote: DocumentStore,
        cache_path: str | os.PathLike,
        *,
        background_sync: bool,
        sync_interval: float = SYNC_INTERVAL_SECONDS,
        scratch_dir: str | os.PathLike | None = None,
        strict: bool = False,
    ) -> None:
        self.remote = remote
        self.background_sync = background_sync
        self.sync_interval = sync_interval
        path = Path(cache_path) if background_sync else _scratch_path(cache_path, scratch_dir)
        self.local = LocalJsonStore(path, strict=strict)

        self._init_lock = threading.Lock()
        self._initialized = False
        self._state_lock = threading.Lock()
        self._dirty = False
        self._generation = 0
        self._last_synced_at: Optional[str] = None
        self._last_error: Optional[str] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ----------------------------------------------------------------- contract
    def read(self) -> ReadResult:
        self._ensure_init()
        return self.local.read()

    def write(self, document: Document | dict[str, Any], *, expected_etag: Optional[str] = None) -> Optional[str]:
        self._ensure_init()
        etag = self.local.write(document, expected_etag=expected_etag)
        if self.background_sync:
            with self._state_lock:
                self._dirty = True
                self._generation += 1
            return etag
        try:
            self.remote.write(document)
            self._record_success()
        except StoreError as exc:
            self._record_failure(exc)
            logger.error("Write-through to %s failed: %s", self.remote.name, exc)
        return etag

    def close(self) -> None:
        """Stop the sync thread and push pending writes one last time."""
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=self.sync_interval)
            self._thread = None
        if self.background_sync and self._initialized:
            self.sync_now()
        self.remote.close()

    # ------------------------------------------------------------------- sync
    @property
    def dirty(self) -> bool:
        return self._dirty

    def sync_now(self) -> bool:
        """
        Push the cached document to the remote if it has unsynced writes.

        Returns True when a push succeeded. Failures are logged and leave the
        cache dirty for the next attempt.
        """
        with self._state_lock:
            if not self._dirty:
                return False
            generation = self._generation
        try:
            cached = self.local.read()
            self.remote.write(cached.document)
        except StoreError as exc:
            self._record_failure(exc)
            logger.error("Sync to %s failed: %s", self.remote.name, exc)
            return False
        with self._state_lock:
            if self._generation == generation:
                self._dirty = False
        self._record_success()
        logger.info("Cache synced to %s", self.remote.name)
        return True

    def status(self) -> SyncStatus:
        return SyncStatus(
            mode="background" if self.background_sync else "write-through",
            remote=self.remote.name,
            cache_path=str(self.local.path),
            initialized=self._initialized,
            dirty=self._dirty,
            last_synced_at=self._last_synced_at,
            last_error=self._last_error,
        )

    # ---------------------------------------------------------------- internals
    def _ensure_init(self) -> None:
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            self._initialize()
            self._initialized = True
            if self.background_sync:
                self._start_sync()

    def _initialize(self) -> None:
        has_local = False
        try:
            has_local = not self.local.read().document.is_empty()
        except StoreError as exc:
            logger.warning("Local cache %s unreadable: %s", self.local.path, exc)

        if has_local:
            return
        try:
            remote = self.remote.read()
            self.local.write(remote.document)
            logger.info("Seeded cache %s from %s", self.local.path, self.remote.name)
        except StoreError as exc:
            self._record_failure(exc)
            logger.warning("Remote %s unavailable, starting with empty cache: %s", self.remote.name, exc)

    def _start_sync(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._sync_loop, name="opsdeck-cache-sync", daemon=True)
        self._thread.start()

    def _sync_loop(self) -> None:
        while not self._stop.wait(self.sync_interval):
            try:
                self.sync_now()
            except Exception:  # keep the loop alive
                logger.exception("Unexpected error in cache sync loop")

    def _record_success(self) -> None:
        with self._state_lock:
            self._last_synced_at = now_iso()
            self._last_error = None

    def _record_failure(self, exc: Exception) -> None:
        with self._state_lock:
            self._last_error = str(exc)
