from fastapi import APIRouter, Request

from opsdeck.routers.payloads import get_repository, id_list

router = APIRouter(prefix="/domains", tags=["domains"])


@router.get("/order")
def get_domain_order(request: Request):
    return {"order": get_repository(request).get_domain_order()}


@router.put("/order")
def set_domain_order(request: Request, payload: dict):
    order = get_repository(request).set_domain_order(id_list(payload, "order"))
    return {"ok": True, "order": order}
