from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from opsdeck.routers.payloads import entity_payload, get_repository, id_list

router = APIRouter(prefix="/servers", tags=["servers"])


@router.get("")
def list_servers(request: Request):
    repo = get_repository(request)
    return [server.to_json() for server in repo.list_servers()]


@router.post("", status_code=201)
def create_server(request: Request, payload: dict):
    repo = get_repository(request)
    return repo.create_server(entity_payload(payload)).to_json()


@router.post("/reorder")
def reorder_servers(request: Request, payload: dict):
    get_repository(request).reorder_servers(id_list(payload))
    return {"ok": True}


@router.post("/probe-import")
def import_probe_nodes(request: Request, payload: dict):
    nodes = payload.get("nodes")
    if not isinstance(nodes, list) or not all(isinstance(n, dict) for n in nodes):
        raise HTTPException(422, "'nodes' must be a list of objects")
    count = get_repository(request).merge_probe_nodes(nodes)
    return {"ok": True, "count": count}


@router.get("/{server_id}")
def get_server(server_id: str, request: Request):
    server = get_repository(request).get_server(server_id)
    if not server:
        raise HTTPException(404, "Server not found")
    return server.to_json()


@router.get("/{server_id}/services")
def list_server_services(server_id: str, request: Request):
    repo = get_repository(request)
    if not repo.get_server(server_id):
        raise HTTPException(404, "Server not found")
    return [service.to_json() for service in repo.list_services_for_server(server_id)]


@router.patch("/{server_id}")
def update_server(server_id: str, request: Request, payload: dict):
    repo = get_repository(request)
    return repo.update_server(server_id, entity_payload(payload)).to_json()


@router.delete("/{server_id}")
def delete_server(server_id: str, request: Request):
    get_repository(request).delete_server(server_id)
    return {"ok": True}
