from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsdeck.app import create_app
from opsdeck.core.config import get_settings
from opsdeck.storage import BackendError, CachedStore, ConcurrencyConflict, LocalJsonStore

from conftest import MemoryStore, sample_document


class ConflictingStore(MemoryStore):
    def write(self, document, *, expected_etag=None):
        raise ConcurrencyConflict(expected_etag, "999")


class BrokenStore(MemoryStore):
    def read(self):
        raise BackendError(self.name, "read failed: HTTP 503")


@pytest.fixture
def store(tmp_path):
    local = LocalJsonStore(tmp_path / "data.json")
    local.write(sample_document())
    return local


@pytest.fixture
def client(store):
    get_settings.cache_clear()
    return TestClient(create_app(store=store))


def test_healthz_reports_store_and_security_headers(client):
    resp = client.get("/healthz")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "store": "local"}
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_server_crud_and_cascade(client, store):
    created = client.post("/servers", json={"name": "cache-1", "tags": "prod, eu"})
    assert created.status_code == 201
    server = created.json()
    assert server["tags"] == ["prod", "eu"]
    assert "createdAt" in server

    patched = client.patch(f"/servers/{server['id']}", json={"host": "10.0.0.9"})
    assert patched.json()["host"] == "10.0.0.9"
    assert patched.json()["name"] == "cache-1"

    assert client.get(f"/servers/{server['id']}").status_code == 200
    assert [s["id"] for s in client.get("/servers/s1/services").json()] == ["a"]

    assert client.delete("/servers/s1").json() == {"ok": True}
    services = client.get("/services").json()
    assert all("serverId" not in s or s["serverId"] != "s1" for s in services)
    assert all(s.get("proxyServerId") != "s1" for s in services)
    assert client.get("/servers/s1").status_code == 404


def test_service_routes_accept_form_style_url_lists(client):
    created = client.post(
        "/services",
        json={"name": "grafana", "serverId": "s2", "urls": "Dashboard | https://grafana.example\nhttps://g2.example"},
    )

    assert created.status_code == 201
    assert created.json()["urls"] == [
        {"label": "Dashboard", "url": "https://grafana.example"},
        {"url": "https://g2.example"},
    ]
    assert [s["name"] for s in client.get("/services", params={"server_id": "s2"}).json()] == ["blog", "grafana"]


def test_reorder_routes(client):
    assert client.post("/services/reorder", json={"ids": ["b", "a"]}).json() == {"ok": True}
    assert [s["id"] for s in client.get("/services").json()] == ["b", "a"]

    bad = client.post("/servers/reorder", json={"ids": "s1"})
    assert bad.status_code == 422


def test_domain_order_routes(client):
    assert client.get("/domains/order").json() == {"order": ["zone-b", "zone-a"]}

    resp = client.put("/domains/order", json={"order": ["zone-a", " "]})

    assert resp.json() == {"ok": True, "order": ["zone-a"]}
    assert client.get("/domains/order").json() == {"order": ["zone-a"]}


def test_probe_and_monitor_imports(client):
    probe = client.post("/servers/probe-import", json={"nodes": [{"uuid": "u-9", "name": "probe-node"}]})
    monitors = client.post("/services/monitor-import", json={"monitors": [{"id": 3, "name": "uptime"}]})

    assert probe.json() == {"ok": True, "count": 1}
    assert monitors.json() == {"ok": True, "count": 1}
    assert "probe-node" in [s["name"] for s in client.get("/servers").json()]


def test_missing_entity_maps_to_404(client):
    resp = client.patch("/services/ghost", json={"name": "x"})

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_invalid_entity_maps_to_422(client):
    resp = client.post("/servers", json={"name": "edge", "panelUrl": "nope"})

    assert resp.status_code == 422
    body = resp.json()
    assert body["ok"] is False
    assert body["error"] == "validation_error"
    assert "panel" in body["message"].lower()


def test_conflict_maps_to_409_with_refresh_message():
    get_settings.cache_clear()
    client = TestClient(create_app(store=ConflictingStore(sample_document())))

    resp = client.patch("/servers/s1", json={"notes": "x"})

    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"
    assert "Refresh and try again" in resp.json()["message"]


def test_backend_failure_maps_to_502():
    get_settings.cache_clear()
    client = TestClient(create_app(store=BrokenStore()))

    resp = client.get("/servers")

    assert resp.status_code == 502
    assert resp.json()["message"] == "memory: read failed: HTTP 503"


def test_backup_export_and_import(client):
    exported = client.get("/backup/export")
    assert exported.status_code == 200
    assert exported.headers["content-disposition"].startswith('attachment; filename="opsdeck-')
    data = json.loads(exported.text)
    data["domainOrder"] = ["restored"]

    imported = client.post("/backup/import", content=json.dumps(data))
    assert imported.json() == {"ok": True, "servers": 2, "services": 2, "domains": 1}
    assert client.get("/domains/order").json() == {"order": ["restored"]}

    broken = client.post("/backup/import", content=b"{nope")
    assert broken.status_code == 400
    assert broken.json()["error"] == "invalid_document"


def test_sync_routes_for_direct_store(client):
    assert client.get("/sync/status").json() == {"mode": "direct", "remote": "local"}
    assert client.post("/sync/run").json() == {"ok": True, "synced": False}


def test_sync_routes_for_cached_store(tmp_path):
    remote = MemoryStore()
    cached = CachedStore(remote, tmp_path / "cache.json", background_sync=True, sync_interval=60)
    get_settings.cache_clear()

    with TestClient(create_app(store=cached)) as client:
        client.put("/domains/order", json={"order": ["zone-a"]})
        status = client.get("/sync/status").json()
        assert status["mode"] == "background"
        assert status["dirty"] is True

        assert client.post("/sync/run").json() == {"ok": True, "synced": True, "dirty": False}
        assert remote.document.domain_order == ["zone-a"]

    assert remote.closed is True


def test_service_filter_ignores_proxy_only_links(client):
    names = [s["name"] for s in client.get("/services", params={"server_id": "s1"}).json()]

    assert names == ["api"]


def test_node_import_accepts_numeric_uuid(client):
    resp = client.post("/servers/probe-import", json={"nodes": [{"uuid": 7, "name": "numeric-node"}]})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "count": 1}
    assert "numeric-node" in [s["name"] for s in client.get("/servers").json()]
