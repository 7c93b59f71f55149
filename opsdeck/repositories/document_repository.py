"""
Entity-level data access on top of a DocumentStore.

Every mutation is one read-modify-write cycle: read the document and its
version token, change a copy in memory, write it back conditioned on that
token. A ConcurrencyConflict from the store reaches the caller unchanged;
nothing here retries.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from opsdeck.core.utils import new_id, now_iso
from opsdeck.domain.models import Document, Server, Service
from opsdeck.domain.ordering import apply_order, sorted_entities
from opsdeck.storage.base import DocumentStore

T = TypeVar("T")

_READ_ONLY_FIELDS = {"id", "created_at", "updated_at"}


class EntityNotFoundError(LookupError):
    """Raised when an update/delete targets an id that is not in the document."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


def _field_lookup(model: type[Server] | type[Service]) -> dict[str, str]:
    lookup = {}
    for name, field in model.model_fields.items():
        lookup[name] = name
        if field.alias:
            lookup[field.alias] = name
    return lookup


_SERVER_FIELDS = _field_lookup(Server)
_SERVICE_FIELDS = _field_lookup(Service)


def _writable(data: Mapping[str, Any], lookup: dict[str, str]) -> dict[str, Any]:
    """Map camelCase/snake_case input keys to field names, dropping read-only and unknown keys."""
    values = {}
    for key, value in data.items():
        name = lookup.get(key)
        if name and name not in _READ_ONLY_FIELDS:
            values[name] = value
    return values


def _billing_cycle(days: Any) -> Optional[str]:
    try:
        days = int(days)
    except (TypeError, ValueError):
        return None
    if days == -1:
        return "permanent"
    if days > 0:
        return f"{days} days"
    return None


class DocumentRepository:
    """CRUD helpers wrapping the configured DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        clock: Callable[[], str] = now_iso,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.store = store
        self._clock = clock
        self._new_id = id_factory

    def _mutate(self, change: Callable[[Document], T]) -> T:
        current = self.store.read()
        document = current.document.model_copy(deep=True)
        result = change(document)
        self.store.write(document, expected_etag=current.etag)
        return result

    def _new_entity(self, model: type[T], data: Mapping[str, Any], lookup: dict[str, str], *, strict: bool = True) -> T:
        now = self._clock()
        values = _writable(data, lookup)
        values.update(id=self._new_id(), created_at=now, updated_at=now)
        return model.model_validate(values, context={"strict": strict})

    def _patched(self, entity: T, patch: Mapping[str, Any], lookup: dict[str, str], *, strict: bool = True) -> T:
        values = entity.model_dump()
        values.update(_writable(patch, lookup))
        values["updated_at"] = self._clock()
        return type(entity).model_validate(values, context={"strict": strict})

    # -------------------------- servers --------------------------
    def list_servers(self) -> list[Server]:
        return sorted_entities(self.store.read().document.servers)

    def get_server(self, server_id: str) -> Optional[Server]:
        for server in self.store.read().document.servers:
            if server.id == server_id:
                return server
        return None

    def create_server(self, data: Mapping[str, Any]) -> Server:
        server = self._new_entity(Server, data, _SERVER_FIELDS)

        def change(document: Document) -> Server:
            document.servers.append(server)
            return server

        return self._mutate(change)

    def update_server(self, server_id: str, patch: Mapping[str, Any]) -> Server:
        def change(document: Document) -> Server:
            for index, server in enumerate(document.servers):
                if server.id == server_id:
                    document.servers[index] = self._patched(server, patch, _SERVER_FIELDS)
                    return document.servers[index]
            raise EntityNotFoundError("server", server_id)

        return self._mutate(change)

    def delete_server(self, server_id: str) -> None:
        """Remove a server and clear every service reference to it in the same write."""

        def change(document: Document) -> None:
            remaining = [s for s in document.servers if s.id != server_id]
            if len(remaining) == len(document.servers):
                raise EntityNotFoundError("server", server_id)
            document.servers = remaining
            now = self._clock()
            for service in document.services:
                if server_id not in (service.server_id, service.proxy_server_id):
                    continue
                if service.server_id == server_id:
                    service.server_id = None
                if service.proxy_server_id == server_id:
                    service.proxy_server_id = None
                service.updated_at = now

        self._mutate(change)

    def reorder_servers(self, ids: Sequence[str]) -> None:
        self._mutate(lambda document: apply_order(document.servers, list(ids)))

    def merge_probe_nodes(self, nodes: Iterable[Mapping[str, Any]]) -> int:
        """
        Upsert servers from probe node records, matched on ``probeUuid``.

        Existing servers only get their hardware/billing metadata refreshed;
        unknown nodes become new servers. Returns the number of nodes applied.
        """
        nodes = [{**n, "uuid": str(n.get("uuid") or "").strip()} for n in nodes]
        nodes = [n for n in nodes if n["uuid"]]

        def change(document: Document) -> int:
            by_uuid = {s.probe_uuid: i for i, s in enumerate(document.servers) if s.probe_uuid}
            for node in nodes:
                metadata = {
                    "cpu_name": node.get("cpu_name") or None,
                    "cpu_cores": node.get("cpu_cores") or None,
                    "os": node.get("os") or None,
                    "arch": node.get("arch") or None,
                    "mem_total": node.get("mem_total") or None,
                    "disk_total": node.get("disk_total") or None,
                    "price": node.get("price") or None,
                    "billing_cycle": _billing_cycle(node.get("billing_cycle")),
                    "currency": node.get("currency") or None,
                    "expired_at": node.get("expired_at") or None,
                }
                index = by_uuid.get(node["uuid"])
                if index is not None:
                    document.servers[index] = self._patched(
                        document.servers[index], metadata, _SERVER_FIELDS, strict=False
                    )
                    continue
                raw_tags = node.get("tags")
                tags = [t.strip() for t in raw_tags.split(";") if t.strip()] if isinstance(raw_tags, str) else []
                server = self._new_entity(
                    Server,
                    {
                        "name": node.get("name") or node["uuid"],
                        "provider": node.get("group") or None,
                        "region": node.get("region") or None,
                        "tags": tags,
                        "probe_uuid": node["uuid"],
                        **metadata,
                    },
                    _SERVER_FIELDS,
                    strict=False,
                )
                document.servers.append(server)
                by_uuid[node["uuid"]] = len(document.servers) - 1
            return len(nodes)

        if not nodes:
            return 0
        return self._mutate(change)

    # -------------------------- services --------------------------
    def list_services(self) -> list[Service]:
        return sorted_entities(self.store.read().document.services)

    def list_services_for_server(self, server_id: str) -> list[Service]:
        services = self.store.read().document.services
        return sorted_entities(s for s in services if s.server_id == server_id)

    def get_service(self, service_id: str) -> Optional[Service]:
        for service in self.store.read().document.services:
            if service.id == service_id:
                return service
        return None

    def create_service(self, data: Mapping[str, Any]) -> Service:
        service = self._new_entity(Service, data, _SERVICE_FIELDS)

        def change(document: Document) -> Service:
            document.services.append(service)
            return service

        return self._mutate(change)

    def update_service(self, service_id: str, patch: Mapping[str, Any]) -> Service:
        def change(document: Document) -> Service:
            for index, service in enumerate(document.services):
                if service.id == service_id:
                    document.services[index] = self._patched(service, patch, _SERVICE_FIELDS)
                    return document.services[index]
            raise EntityNotFoundError("service", service_id)

        return self._mutate(change)

    def delete_service(self, service_id: str) -> None:
        def change(document: Document) -> None:
            remaining = [s for s in document.services if s.id != service_id]
            if len(remaining) == len(document.services):
                raise EntityNotFoundError("service", service_id)
            document.services = remaining

        self._mutate(change)

    def reorder_services(self, ids: Sequence[str]) -> None:
        self._mutate(lambda document: apply_order(document.services, list(ids)))

    def import_status_monitors(self, monitors: Iterable[Mapping[str, Any]]) -> int:
        """Create one service per status monitor not linked yet. Returns how many were created."""
        monitors = list(monitors)

        def change(document: Document) -> int:
            linked = {s.monitor_id for s in document.services if s.monitor_id}
            created = 0
            for monitor in monitors:
                monitor_id = monitor.get("id")
                if not monitor_id or monitor_id in linked:
                    continue
                service = self._new_entity(
                    Service,
                    {
                        "name": monitor.get("name") or f"monitor-{monitor_id}",
                        "monitor_id": monitor_id,
                        "monitor_group": monitor.get("group") or None,
                    },
                    _SERVICE_FIELDS,
                    strict=False,
                )
                document.services.append(service)
                linked.add(monitor_id)
                created += 1
            return created

        return self._mutate(change)

    # -------------------------- domain order --------------------------
    def get_domain_order(self) -> list[str]:
        return list(self.store.read().document.domain_order)

    def set_domain_order(self, zone_ids: Sequence[str]) -> list[str]:
        cleaned = [z.strip() for z in zone_ids if isinstance(z, str) and z.strip()]

        def change(document: Document) -> list[str]:
            document.domain_order = cleaned
            return cleaned

        return self._mutate(change)
