"""
JSON document stored as a file on local disk.

The version token is the file mtime (nanoseconds), read from the same open
file as the content. The check-then-write is not atomic: two writers racing
between the stat and the rename can both win, which is acceptable for a
single-host cache but not as the only guard for several writers.
"""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

from opsdeck.domain.models import Document, empty_document
from opsdeck.storage.base import DocumentStore, ReadResult, load_document, normalize_document, serialize_document
from opsdeck.storage.errors import BackendError, ConcurrencyConflict

logger = logging.getLogger(__name__)


class LocalJsonStore(DocumentStore):
    name = "local"

    def __init__(self, path: str | os.PathLike, *, strict: bool = False) -> None:
        self.path = Path(path)
        self.strict = strict

    def read(self) -> ReadResult:
        try:
            # token and content must come from the same inode
            with self.path.open("rb") as fh:
                etag = str(os.fstat(fh.fileno()).st_mtime_ns)
                raw = fh.read()
        except FileNotFoundError:
            logger.info("%s does not exist yet, seeding empty document", self.path)
            empty = empty_document()
            etag = self.write(empty)
            return ReadResult(empty, etag)
        except OSError as exc:
            raise BackendError(self.name, str(exc)) from exc
        document = load_document(raw, source=f"{self.name}:{self.path}", strict=self.strict)
        return ReadResult(document, etag)

    def write(self, document: Document | dict[str, Any], *, expected_etag: Optional[str] = None) -> Optional[str]:
        next_doc = normalize_document(document)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            previous = self._current_etag()
            if expected_etag and previous is not None and previous != expected_etag:
                raise ConcurrencyConflict(expected_etag, previous)

            tmp = self.path.with_name(f".{self.path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
            tmp.write_text(serialize_document(next_doc), encoding="utf-8")
            os.replace(tmp, self.path)

            current = self._current_etag()
            if previous is not None and current is not None and int(current) <= int(previous):
                # coarse filesystem clock: move mtime forward so the token changes
                st = self.path.stat()
                os.utime(self.path, ns=(st.st_atime_ns, int(previous) + 1))
                current = self._current_etag()
            return current
        except OSError as exc:
            raise BackendError(self.name, str(exc)) from exc

    def _current_etag(self) -> Optional[str]:
        try:
            return str(self.path.stat().st_mtime_ns)
        except FileNotFoundError:
            return None
