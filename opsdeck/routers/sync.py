from dataclasses import asdict

from fastapi import APIRouter, Request

from opsdeck.storage import CachedStore

router = APIRouter(prefix="/sync", tags=["sync"])


def _get_store(request: Request):
    store = getattr(getattr(request.app, "state", None), "store", None)
    if store is None:
        raise RuntimeError("Document store not configured")
    return store


@router.get("/status")
def sync_status(request: Request):
    store = _get_store(request)
    if isinstance(store, CachedStore):
        return asdict(store.status())
    return {"mode": "direct", "remote": store.name}


@router.post("/run")
def sync_run(request: Request):
    """Push pending cache writes to the remote now instead of waiting for the timer."""
    store = _get_store(request)
    if not isinstance(store, CachedStore):
        return {"ok": True, "synced": False}
    synced = store.sync_now()
    status = store.status()
    return {"ok": synced or not status.dirty, "synced": synced, "dirty": status.dirty}
