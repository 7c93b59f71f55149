"""
Entity-level data access.

Routers and services depend on DocumentRepository rather than touching a
store (or the JSON document) directly.
"""

from .document_repository import DocumentRepository, EntityNotFoundError

__all__ = ["DocumentRepository", "EntityNotFoundError"]
