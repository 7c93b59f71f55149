"""Helpers shared by routers to read request payloads and app state."""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from opsdeck.core.utils import parse_tags, parse_url_list
from opsdeck.repositories import DocumentRepository

_URL_LIST_KEYS = ("urls", "managementUrls", "management_urls")


def get_repository(request: Request) -> DocumentRepository:
    repo = getattr(getattr(request.app, "state", None), "repository", None)
    if not repo:
        raise RuntimeError("DocumentRepository not configured")
    return repo


def entity_payload(payload: Any) -> dict:
    """
    Accept JSON bodies as well as the free-text shapes the edit forms post:
    comma/newline separated tags and "label | url" lines.
    """
    if not isinstance(payload, dict):
        raise HTTPException(422, "JSON object expected")
    data = dict(payload)
    if isinstance(data.get("tags"), str):
        data["tags"] = parse_tags(data["tags"])
    for key in _URL_LIST_KEYS:
        if isinstance(data.get(key), str):
            data[key] = parse_url_list(data[key])
    return data


def id_list(payload: Any, key: str = "ids") -> list[str]:
    values = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise HTTPException(422, f"'{key}' must be a list of strings")
    return values
