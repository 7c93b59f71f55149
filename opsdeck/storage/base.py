"""
Store contract shared by every backend.

A store persists exactly one Document. ``read`` returns it with an opaque
version token (etag); ``write`` persists a new version, optionally only if
the stored token still equals the one the caller read.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from opsdeck.domain.models import Document, empty_document, validate_document
from opsdeck.storage.errors import CorruptDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadResult:
    document: Document
    etag: Optional[str] = None


def serialize_document(document: Document) -> str:
    """Stable on-disk form: 2-space indent, trailing newline."""
    return json.dumps(document.to_json(), ensure_ascii=False, indent=2) + "\n"


def load_document(text: str | bytes, *, source: str, strict: bool = False) -> Document:
    """
    Parse stored content into a Document.

    Unparseable or non-conforming content degrades to the empty document,
    or raises CorruptDocument when ``strict`` is set.
    """
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        return validate_document(json.loads(text or "{}"), strict=strict)
    except (ValueError, ValidationError) as exc:
        if strict:
            raise CorruptDocument(source, str(exc).splitlines()[0]) from exc
        logger.warning("%s: stored document is invalid, falling back to empty document", source)
        return empty_document()


def normalize_document(document: Document | dict[str, Any]) -> Document:
    return validate_document(document)


class DocumentStore(ABC):
    """Read/write contract implemented by the local, WebDAV, S3 and cached stores."""

    name = "store"

    @abstractmethod
    def read(self) -> ReadResult:
        """Return the stored document, seeding an empty one if none exists yet."""

    @abstractmethod
    def write(self, document: Document | dict[str, Any], *, expected_etag: Optional[str] = None) -> Optional[str]:
        """
        Persist ``document`` and return the new version token.

        Raises ConcurrencyConflict (persisting nothing) when ``expected_etag``
        is given and no longer matches. Without a token the write always wins.
        """

    def close(self) -> None:
        """Release connections/background work. Safe to call more than once."""
