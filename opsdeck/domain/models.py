"""
Schema of the persisted dashboard document.

Every field carries the default it falls back to when the stored value does
not validate, so a partially damaged document still loads. Entities missing
their identity (`id`/`name`) cannot be repaired: their whole collection falls
back to an empty list. Validation with ``strict=True`` disables the fallbacks
and surfaces the original ValidationError instead.

Keys are stored in camelCase (``serverId``, ``sortOrder``...) while the
Python attributes are snake_case; both spellings are accepted on input.
"""
from __future__ import annotations

import copy
from datetime import datetime
from typing import Annotated, Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    ValidationInfo,
    WrapValidator,
)
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 2
EPOCH_ISO = "1970-01-01T00:00:00.000Z"


def _or_default(default: Any) -> WrapValidator:
    """Replace an invalid value with ``default`` unless validating strictly."""

    def validate(value: Any, handler, info: ValidationInfo) -> Any:
        try:
            return handler(value)
        except ValidationError:
            if info.context and info.context.get("strict"):
                raise
            return copy.deepcopy(default)

    return WrapValidator(validate)


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("invalid URL")
    return value


def _check_datetime(value: str) -> str:
    datetime.fromisoformat(value)
    return value


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]
Url = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), AfterValidator(_check_url)]
IsoDatetime = Annotated[str, StringConstraints(strip_whitespace=True), AfterValidator(_check_datetime)]

OptStr = Annotated[Optional[NonEmptyStr], _or_default(None)]
OptTrimmed = Annotated[Optional[TrimmedStr], _or_default(None)]
OptUrl = Annotated[Optional[Url], _or_default(None)]
OptPositiveInt = Annotated[Optional[Annotated[int, Field(gt=0)]], _or_default(None)]
OptCount = Annotated[Optional[Annotated[int, Field(ge=0)]], _or_default(None)]
OptPrice = Annotated[Optional[Annotated[float, Field(ge=0)]], _or_default(None)]
OptDatetime = Annotated[Optional[IsoDatetime], _or_default(None)]
Tags = Annotated[list[NonEmptyStr], _or_default([])]
Notes = Annotated[str, _or_default("")]
Timestamp = Annotated[IsoDatetime, _or_default(EPOCH_ISO)]


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_json(self) -> dict:
        """Plain JSON structure with camelCase keys and unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UrlItem(DocumentModel):
    label: OptStr = None
    url: Url


UrlItems = Annotated[list[UrlItem], _or_default([])]


class ProxyConfig(DocumentModel):
    type: Annotated[Literal["none", "nginx", "caddy", "traefik", "1panel", "other"], _or_default("none")] = "none"
    upstream: OptTrimmed = None
    rules: Notes = ""


class DockerConfig(DocumentModel):
    compose_path: OptTrimmed = None
    container_name: OptTrimmed = None


class VercelConfig(DocumentModel):
    project: OptTrimmed = None


class Server(DocumentModel):
    id: NonEmptyStr
    name: NonEmptyStr
    host: OptStr = None
    provider: OptStr = None
    region: OptStr = None
    panel_url: OptUrl = None
    tags: Tags = Field(default_factory=list)
    notes: Notes = ""

    # probe metadata
    probe_uuid: OptStr = None
    cpu_name: OptStr = None
    cpu_cores: OptPositiveInt = None
    os: OptStr = None
    arch: OptStr = None
    mem_total: OptCount = None
    disk_total: OptCount = None

    # billing
    price: OptPrice = None
    billing_cycle: OptStr = None
    currency: OptStr = None
    expired_at: OptDatetime = None

    sort_order: OptCount = None
    created_at: Timestamp = EPOCH_ISO
    updated_at: Timestamp = EPOCH_ISO


class Service(DocumentModel):
    id: NonEmptyStr
    name: NonEmptyStr
    description: Notes = ""
    server_id: OptStr = None
    proxy_server_id: OptStr = None
    status: Annotated[Literal["active", "paused", "archived"], _or_default("active")] = "active"
    deployment_type: Annotated[
        Literal["docker", "vercel", "reverse_proxy", "static", "other"], _or_default("other")
    ] = "other"
    repo_url: OptUrl = None
    github: OptUrl = None
    urls: UrlItems = Field(default_factory=list)
    management_urls: UrlItems = Field(default_factory=list)
    healthcheck_url: OptUrl = None
    tags: Tags = Field(default_factory=list)
    notes: Notes = ""

    # status monitor link
    monitor_id: OptPositiveInt = None
    monitor_group: OptStr = None

    proxy: Annotated[Optional[ProxyConfig], _or_default(None)] = None
    docker: Annotated[Optional[DockerConfig], _or_default(None)] = None
    vercel: Annotated[Optional[VercelConfig], _or_default(None)] = None

    sort_order: OptCount = None
    created_at: Timestamp = EPOCH_ISO
    updated_at: Timestamp = EPOCH_ISO


class Document(DocumentModel):
    """The single root aggregate persisted by every store."""

    version: Annotated[Literal[2], _or_default(SCHEMA_VERSION)] = SCHEMA_VERSION
    servers: Annotated[list[Server], _or_default([])] = Field(default_factory=list)
    services: Annotated[list[Service], _or_default([])] = Field(default_factory=list)
    domain_order: Annotated[list[NonEmptyStr], _or_default([])] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.servers or self.services or self.domain_order)


def empty_document() -> Document:
    return Document()


def validate_document(raw: Any, *, strict: bool = False) -> Document:
    """
    Normalize ``raw`` (a Document or a JSON mapping) against the schema.

    Raises ValidationError when ``raw`` is not a mapping, or, in strict mode,
    when any field would have needed its fallback.
    """
    if isinstance(raw, Document):
        raw = raw.to_json()
    return Document.model_validate(raw, context={"strict": strict})
