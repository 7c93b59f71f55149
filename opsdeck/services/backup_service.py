"""
Backup/restore of the whole document.

Export is a plain read. Import is an unconditional overwrite: it bypasses the
version check on purpose (disaster recovery), so whatever was stored before
is replaced without any merge. Last writer wins.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from opsdeck.domain.models import Document, validate_document
from opsdeck.storage.base import DocumentStore, serialize_document
from opsdeck.storage.errors import CorruptDocument

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "opsdeck"


def backup_filename(now: Optional[datetime] = None) -> str:
    """`opsdeck-2026-01-31T12-00-00Z.json` style name for a snapshot taken at ``now``."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%SZ")
    return f"{BACKUP_PREFIX}-{stamp}.json"


def parse_backup(raw: str | bytes) -> Document:
    """Strictly validate a backup payload; nothing is repaired or defaulted."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except ValueError as exc:
        raise CorruptDocument("import", "JSON could not be parsed") from exc
    try:
        return validate_document(data, strict=True)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ())) or "document"
        raise CorruptDocument("import", f"{where}: {first.get('msg', 'invalid value')}") from exc


class BackupService:
    """Export/import helpers shared by the HTTP routes and the CLI."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def export_document(self) -> str:
        return serialize_document(self.store.read().document)

    def import_document(self, raw: str | bytes) -> Document:
        """
        Replace the stored document with ``raw``.

        Dangerous: the write carries no version token and silently discards
        any concurrent change.
        """
        document = parse_backup(raw)
        self.store.write(document)
        logger.warning(
            "Document overwritten by import (%d servers, %d services)",
            len(document.servers),
            len(document.services),
        )
        return document
