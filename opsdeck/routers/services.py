from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from opsdeck.routers.payloads import entity_payload, get_repository, id_list

router = APIRouter(prefix="/services", tags=["services"])


@router.get("")
def list_services(request: Request, server_id: Optional[str] = None):
    repo = get_repository(request)
    services = repo.list_services_for_server(server_id) if server_id else repo.list_services()
    return [service.to_json() for service in services]


@router.post("", status_code=201)
def create_service(request: Request, payload: dict):
    repo = get_repository(request)
    return repo.create_service(entity_payload(payload)).to_json()


@router.post("/reorder")
def reorder_services(request: Request, payload: dict):
    get_repository(request).reorder_services(id_list(payload))
    return {"ok": True}


@router.post("/monitor-import")
def import_status_monitors(request: Request, payload: dict):
    monitors = payload.get("monitors")
    if not isinstance(monitors, list) or not all(isinstance(m, dict) for m in monitors):
        raise HTTPException(422, "'monitors' must be a list of objects")
    count = get_repository(request).import_status_monitors(monitors)
    return {"ok": True, "count": count}


@router.get("/{service_id}")
def get_service(service_id: str, request: Request):
    service = get_repository(request).get_service(service_id)
    if not service:
        raise HTTPException(404, "Service not found")
    return service.to_json()


@router.patch("/{service_id}")
def update_service(service_id: str, request: Request, payload: dict):
    repo = get_repository(request)
    return repo.update_service(service_id, entity_payload(payload)).to_json()


@router.delete("/{service_id}")
def delete_service(service_id: str, request: Request):
    get_repository(request).delete_service(service_id)
    return {"ok": True}
