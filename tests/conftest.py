from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

# Make the opsdeck package importable without installing it
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsdeck.domain.models import Document
from opsdeck.storage.base import DocumentStore, ReadResult, normalize_document
from opsdeck.storage.errors import BackendError, ConcurrencyConflict


class MemoryStore(DocumentStore):
    """In-memory remote with an integer version token and switchable outages."""

    name = "memory"

    def __init__(self, document: Document | dict | None = None, *, read_delay: float = 0.0) -> None:
        self.document = normalize_document(document or {})
        self.version = 1
        self.fail = False
        self.reads = 0
        self.writes = 0
        self.closed = False
        self.read_delay = read_delay
        self._lock = threading.Lock()

    def read(self) -> ReadResult:
        with self._lock:
            self.reads += 1
        if self.read_delay:
            time.sleep(self.read_delay)
        if self.fail:
            raise BackendError(self.name, "unreachable")
        with self._lock:
            return ReadResult(self.document.model_copy(deep=True), str(self.version))

    def write(self, document, *, expected_etag=None):
        if self.fail:
            raise BackendError(self.name, "unreachable")
        with self._lock:
            if expected_etag and expected_etag != str(self.version):
                raise ConcurrencyConflict(expected_etag, str(self.version))
            self.document = normalize_document(document)
            self.version += 1
            self.writes += 1
            return str(self.version)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def memory_store():
    return MemoryStore()


def sample_document() -> dict:
    return {
        "version": 2,
        "servers": [
            {"id": "s1", "name": "edge-1", "host": "10.0.0.1", "tags": ["prod"]},
            {"id": "s2", "name": "db-1", "sortOrder": 0},
        ],
        "services": [
            {"id": "a", "name": "api", "serverId": "s1", "status": "active"},
            {"id": "b", "name": "blog", "serverId": "s2", "proxyServerId": "s1"},
        ],
        "domainOrder": ["zone-b", "zone-a"],
    }
