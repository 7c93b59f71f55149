from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from opsdeck.core.config import Settings, get_settings
from opsdeck.repositories import DocumentRepository, EntityNotFoundError
from opsdeck.routers import backup as backup_router
from opsdeck.routers import domains as domains_router
from opsdeck.routers import servers as servers_router
from opsdeck.routers import services as services_router
from opsdeck.routers import sync as sync_router
from opsdeck.services.backup_service import BackupService
from opsdeck.storage import BackendError, ConcurrencyConflict, CorruptDocument, DocumentStore, build_store

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (anti clickjacking, sniffing, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": code, "message": message}, status_code=status_code)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConcurrencyConflict)
    async def _conflict(request: Request, exc: ConcurrencyConflict):
        return _error_response(409, "conflict", str(exc))

    @app.exception_handler(EntityNotFoundError)
    async def _not_found(request: Request, exc: EntityNotFoundError):
        return _error_response(404, "not_found", str(exc))

    @app.exception_handler(CorruptDocument)
    async def _corrupt(request: Request, exc: CorruptDocument):
        return _error_response(400, "invalid_document", str(exc))

    @app.exception_handler(BackendError)
    async def _backend(request: Request, exc: BackendError):
        logger.error("Backend failure on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(502, "backend_error", str(exc))

    @app.exception_handler(ValidationError)
    async def _invalid(request: Request, exc: ValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()))
        message = f"{where}: {first.get('msg', 'invalid value')}" if where else first.get("msg", "invalid value")
        return _error_response(422, "validation_error", message)


def create_app(settings: Settings | None = None, store: DocumentStore | None = None) -> FastAPI:
    """
    Build the FastAPI app around one document store.

    The store is constructed once here and shared through ``app.state``; it
    is closed (stopping any background sync) when the app shuts down.
    """
    settings = settings or get_settings()
    store = store or build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("opsdeck started with %s store", store.name)
        yield
        logger.info("Closing %s store", store.name)
        await run_in_threadpool(store.close)

    app = FastAPI(title="opsdeck", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.repository = DocumentRepository(store)
    app.state.backup_service = BackupService(store)

    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    _register_error_handlers(app)

    app.include_router(servers_router.router)
    app.include_router(services_router.router)
    app.include_router(domains_router.router)
    app.include_router(backup_router.router)
    app.include_router(sync_router.router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "store": store.name}

    return app
