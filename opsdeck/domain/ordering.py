"""Listing order and manual reordering for servers and services."""
from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from opsdeck.domain.models import Server, Service

Entity = TypeVar("Entity", Server, Service)


def sort_key(entity: Server | Service) -> tuple:
    """Explicit sortOrder first (ascending), unordered entities last, ties by name."""
    if entity.sort_order is None:
        return (1, 0, entity.name)
    return (0, entity.sort_order, entity.name)


def sorted_entities(entities: Iterable[Entity]) -> list[Entity]:
    return sorted(entities, key=sort_key)


def apply_order(entities: Iterable[Entity], ids: Sequence[str]) -> int:
    """
    Rewrite ``sort_order`` to each entity's position in ``ids``.

    Entities not listed keep their current value; unknown ids are ignored.
    Returns how many entities were touched.
    """
    positions = {entity_id: index for index, entity_id in enumerate(ids)}
    touched = 0
    for entity in entities:
        if entity.id in positions:
            entity.sort_order = positions[entity.id]
            touched += 1
    return touched
