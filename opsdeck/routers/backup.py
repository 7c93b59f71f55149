from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from opsdeck.services.backup_service import BackupService, backup_filename

router = APIRouter(prefix="/backup", tags=["backup"])


def _get_backup_service(request: Request) -> BackupService:
    svc = getattr(getattr(request.app, "state", None), "backup_service", None)
    if not svc:
        raise RuntimeError("BackupService not configured")
    return svc


@router.get("/export")
def export_document(request: Request):
    body = _get_backup_service(request).export_document()
    return Response(
        body,
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )


@router.post("/import")
async def import_document(request: Request):
    """Overwrite the whole document with the posted JSON (no version check)."""
    raw = await request.body()
    document = await run_in_threadpool(_get_backup_service(request).import_document, raw)
    return {
        "ok": True,
        "servers": len(document.servers),
        "services": len(document.services),
        "domains": len(document.domain_order),
    }
