from __future__ import annotations

import contextlib
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from logging_config import configure_logging
from persistence.backups import BackupManager
from persistence.disk_store import DiskJsonDocumentStore
from persistence.errors import DocumentValidationError, UnknownDocumentError, WriteLockTimeout
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    store: DiskJsonDocumentStore = app.state.store
    backups: BackupManager = app.state.backups
    settings: Settings = app.state.settings

    await store.ensure_all_files()
    await store.cleanup_temp_files()
    if settings.enable_backup_scheduler:
        backups.start()
    try:
        yield
    finally:
        await backups.stop()


def create_app(settings: Settings | None = None) -> FastAPI:
    if settings is None:
        load_dotenv("local.env")
        settings = get_settings()
    configure_logging(settings)

    from endpoints.admin_endpoints import router as admin_router

    store = DiskJsonDocumentStore.from_settings(settings)
    backups = BackupManager.from_settings(store, settings)

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.backups = backups

    @app.exception_handler(WriteLockTimeout)
    async def lock_timeout_handler(request: Request, exc: WriteLockTimeout):
        logger.warning("Write lock timeout on %s: %s", request.url.path, exc)
        return JSONResponse({"detail": str(exc)}, status_code=503)

    @app.exception_handler(UnknownDocumentError)
    async def unknown_document_handler(request: Request, exc: UnknownDocumentError):
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.exception_handler(DocumentValidationError)
    async def validation_handler(request: Request, exc: DocumentValidationError):
        return JSONResponse({"detail": str(exc)}, status_code=422)

    app.include_router(admin_router)

    logger.info("Document store ready: data_dir=%s backup_dir=%s", store.data_dir, backups.backup_dir)
    return app


app = create_app()
