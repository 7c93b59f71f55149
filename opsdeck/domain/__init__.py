"""Document schema and ordering rules."""

from .models import (
    Document,
    DockerConfig,
    ProxyConfig,
    Server,
    Service,
    UrlItem,
    VercelConfig,
    empty_document,
    validate_document,
)
from .ordering import apply_order, sort_key, sorted_entities

__all__ = [
    "Document",
    "DockerConfig",
    "ProxyConfig",
    "Server",
    "Service",
    "UrlItem",
    "VercelConfig",
    "empty_document",
    "validate_document",
    "apply_order",
    "sort_key",
    "sorted_entities",
]
