"""
JSON document stored as a file on a WebDAV server.

The version token is the server's ETag. Conditional writes send it as
``If-Match`` so the server performs the compare-and-swap; a 412 answer is
reported as ConcurrencyConflict. Seeding a missing file uses
``If-None-Match: *`` so a file created meanwhile by another client is read
instead of overwritten.
"""
from __future__ import annotations

import logging
import posixpath
import xml.etree.ElementTree as ET
from typing import Any, Optional
from urllib.parse import quote

import httpx

from opsdeck.domain.models import Document, empty_document
from opsdeck.storage.base import DocumentStore, ReadResult, load_document, normalize_document, serialize_document
from opsdeck.storage.errors import BackendError, ConcurrencyConflict

logger = logging.getLogger(__name__)

_PROPFIND_ETAG = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:getetag/></d:prop></d:propfind>'
)


def build_webdav_client(
    base_url: str,
    username: str | None = None,
    password: str | None = None,
    *,
    timeout: float = 15.0,
) -> httpx.Client:
    """Create the `httpx.Client` used to talk to the WebDAV server."""
    auth = (username, password or "") if username else None
    return httpx.Client(
        base_url=base_url.rstrip("/") + "/",
        auth=auth,
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
    )


class WebDavJsonStore(DocumentStore):
    name = "webdav"

    def __init__(
        self,
        base_url: str,
        file_path: str,
        username: str | None = None,
        password: str | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float = 15.0,
        strict: bool = False,
    ) -> None:
        self.base_url = base_url
        self.file_path = "/" + file_path.strip("/")
        self.strict = strict
        self._client = client or build_webdav_client(base_url, username, password, timeout=timeout)
        self._dir_ready = False

    def read(self) -> ReadResult:
        try:
            response = self._client.get(self._href(self.file_path))
        except httpx.HTTPError as exc:
            raise BackendError(self.name, f"read failed: {exc}") from exc
        if response.status_code == 404:
            return self._seed()
        if response.is_error:
            raise BackendError(self.name, f"read failed: HTTP {response.status_code}")
        document = load_document(response.content, source=f"{self.name}:{self.file_path}", strict=self.strict)
        etag = response.headers.get("etag") or self._stat_etag()
        return ReadResult(document, etag)

    def write(self, document: Document | dict[str, Any], *, expected_etag: Optional[str] = None) -> Optional[str]:
        headers = {"If-Match": expected_etag} if expected_etag else {}
        return self._put(normalize_document(document), headers, expected_etag)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    def _seed(self) -> ReadResult:
        """Create the empty document unless another client created the file first."""
        logger.info("%s not found on WebDAV server, seeding empty document", self.file_path)
        empty = empty_document()
        try:
            etag = self._put(empty, {"If-None-Match": "*"}, None)
        except ConcurrencyConflict:
            logger.info("%s was created concurrently, reading it instead", self.file_path)
            return self.read()
        return ReadResult(empty, etag)

    def _put(self, next_doc: Document, conditions: dict[str, str], expected_etag: Optional[str]) -> Optional[str]:
        self._ensure_dir()
        headers = {"Content-Type": "application/json; charset=utf-8", **conditions}
        try:
            response = self._client.put(
                self._href(self.file_path),
                content=serialize_document(next_doc).encode("utf-8"),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise BackendError(self.name, f"write failed: {exc}") from exc
        if response.status_code == 412:
            raise ConcurrencyConflict(expected_etag)
        if response.is_error:
            raise BackendError(self.name, f"write failed: HTTP {response.status_code}")
        return response.headers.get("etag") or self._stat_etag()

    def _href(self, path: str) -> str:
        return quote(path.lstrip("/"))

    def _stat_etag(self) -> Optional[str]:
        try:
            response = self._client.request(
                "PROPFIND",
                self._href(self.file_path),
                content=_PROPFIND_ETAG.encode("utf-8"),
                headers={"Depth": "0", "Content-Type": "application/xml; charset=utf-8"},
            )
        except httpx.HTTPError as exc:
            raise BackendError(self.name, f"stat failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.is_error:
            raise BackendError(self.name, f"stat failed: HTTP {response.status_code}")
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise BackendError(self.name, f"malformed PROPFIND response: {exc}") from exc
        node = root.find(".//{DAV:}getetag")
        if node is None or not (node.text or "").strip():
            return None
        return node.text.strip()

    def _ensure_dir(self) -> None:
        parent = posixpath.dirname(self.file_path)
        if self._dir_ready or parent in ("", "/"):
            return
        current = ""
        for segment in parent.strip("/").split("/"):
            current = f"{current}/{segment}"
            try:
                response = self._client.request("MKCOL", self._href(current) + "/")
            except httpx.HTTPError as exc:
                raise BackendError(self.name, f"create directory {current} failed: {exc}") from exc
            # 405: collection already exists
            if response.is_error and response.status_code != 405:
                raise BackendError(self.name, f"create directory {current} failed: HTTP {response.status_code}")
        self._dir_ready = True
