"""Errors raised by document stores."""

from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base exception for the storage layer."""


class ConcurrencyConflict(StoreError):
    """The expected version token no longer matches the stored document."""

    def __init__(self, expected: Optional[str], actual: Optional[str] = None):
        super().__init__("Document was updated elsewhere (version mismatch). Refresh and try again.")
        self.expected = expected
        self.actual = actual


class BackendError(StoreError):
    """Any backend-specific failure (network, auth, malformed response)."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend
        self.message = message


class CorruptDocument(StoreError):
    """Stored or imported content does not match the document schema."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"{source}: invalid document ({reason})")
        self.source = source
        self.reason = reason
