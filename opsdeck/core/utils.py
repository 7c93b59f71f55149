"""
Utility helpers shared across routers/services.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

_TAG_SPLIT = re.compile(r"[,\n]")


def now_iso() -> str:
    """UTC timestamp in the ISO form stored in the document (millisecond precision, `Z` suffix)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    return secrets.token_hex(8)


def split_non_empty_lines(value: str | None) -> list[str]:
    return [line.strip() for line in (value or "").splitlines() if line.strip()]


def parse_tags(value: str | None) -> list[str]:
    """
    Split free-text tag input on commas and newlines.
    """
    if not (value or "").strip():
        return []
    return [tag.strip() for tag in _TAG_SPLIT.split(value) if tag.strip()]


def parse_url_list(value: str | None) -> list[dict]:
    """
    Parse one URL per line, either "label | https://..." or a bare URL.
    """
    items: list[dict] = []
    for line in split_non_empty_lines(value):
        parts = [p.strip() for p in line.split("|")]
        if len(parts) == 1:
            items.append({"url": parts[0]})
            continue
        url = parts[-1]
        if not url:
            continue
        label = " | ".join(parts[:-1]).strip()
        item = {"url": url}
        if label:
            item["label"] = label
        items.append(item)
    return items
