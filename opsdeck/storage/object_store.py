"""
JSON document stored as a single object in an S3-compatible bucket.

The version token is the object ETag. Conditional writes use PutObject's
``IfMatch`` precondition, so the bucket itself performs the compare-and-swap.
Seeding a missing object uses ``IfNoneMatch="*"`` and reads the object
instead when another writer created it first.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from opsdeck.domain.models import Document, empty_document
from opsdeck.storage.base import DocumentStore, ReadResult, load_document, normalize_document, serialize_document
from opsdeck.storage.errors import BackendError, ConcurrencyConflict

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_CONFLICT_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}


def build_s3_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    access_key_id: str | None = None,
    secret_access_key: str | None = None,
    timeout: float = 15.0,
):
    session = boto3.Session(
        aws_access_key_id=access_key_id or None,
        aws_secret_access_key=secret_access_key or None,
        region_name=region or None,
    )
    return session.client(
        "s3",
        region_name=region or None,
        endpoint_url=endpoint_url or None,
        config=BotoConfig(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


class ObjectJsonStore(DocumentStore):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        key: str,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client=None,
        timeout: float = 15.0,
        strict: bool = False,
    ) -> None:
        self.bucket = bucket
        self.key = key.lstrip("/")
        self.strict = strict
        self._s3 = client or build_s3_client(
            region=region,
            endpoint_url=endpoint_url,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            timeout=timeout,
        )

    def read(self) -> ReadResult:
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=self.key)
            body = resp["Body"].read()
        except ClientError as exc:
            if _error_code(exc) not in _NOT_FOUND_CODES:
                raise BackendError(self.name, f"read failed: {exc}") from exc
            resp = None
        except BotoCoreError as exc:
            raise BackendError(self.name, f"read failed: {exc}") from exc
        if resp is None:
            return self._seed()
        document = load_document(body, source=f"{self.name}:{self.bucket}/{self.key}", strict=self.strict)
        etag = resp.get("ETag")
        return ReadResult(document, etag if isinstance(etag, str) else None)

    def write(self, document: Document | dict[str, Any], *, expected_etag: Optional[str] = None) -> Optional[str]:
        conditions = {"IfMatch": expected_etag} if expected_etag else {}
        return self._put(normalize_document(document), conditions, expected_etag)

    def close(self) -> None:
        close = getattr(self._s3, "close", None)
        if callable(close):
            close()

    def _seed(self) -> ReadResult:
        """Create the empty document unless another writer created the object first."""
        logger.info("s3://%s/%s not found, seeding empty document", self.bucket, self.key)
        empty = empty_document()
        try:
            etag = self._put(empty, {"IfNoneMatch": "*"}, None)
        except ConcurrencyConflict:
            logger.info("s3://%s/%s was created concurrently, reading it instead", self.bucket, self.key)
            return self.read()
        return ReadResult(empty, etag)

    def _put(self, next_doc: Document, conditions: dict[str, str], expected_etag: Optional[str]) -> Optional[str]:
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": self.key,
            "Body": serialize_document(next_doc).encode("utf-8"),
            "ContentType": "application/json; charset=utf-8",
            **conditions,
        }
        try:
            resp = self._s3.put_object(**kwargs)
        except ClientError as exc:
            if _error_code(exc) in _CONFLICT_CODES:
                raise ConcurrencyConflict(expected_etag) from exc
            raise BackendError(self.name, f"write failed: {exc}") from exc
        except BotoCoreError as exc:
            raise BackendError(self.name, f"write failed: {exc}") from exc
        etag = resp.get("ETag")
        return etag if isinstance(etag, str) else None
