from __future__ import annotations

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from persistence.backups import BackupManager
from persistence.disk_store import DiskJsonDocumentStore
from persistence.errors import BackupNotFoundError
from persistence.models import (
    BackupInfo,
    BackupResult,
    BackupStatus,
    BackupVerification,
    CleanupResult,
    DocumentInfo,
    IntegrityReport,
    RestoreResult,
)
from settings import Settings

logger = logging.getLogger(__name__)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DiskJsonDocumentStore:
    return request.app.state.store


def get_backups(request: Request) -> BackupManager:
    return request.app.state.backups


def require_admin(request: Request, settings: Settings = Depends(get_settings_dep)) -> None:
    token = settings.admin_token
    if not token:
        return
    auth = request.headers.get("authorization", "")
    scheme, _, presented = auth.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(presented.strip().encode(), token.encode()):
        logger.warning("ADMIN: rejected request to %s", request.url.path)
        raise HTTPException(status_code=401, detail="invalid_token", headers={"WWW-Authenticate": "Bearer"})


router = APIRouter(tags=["admin"])
admin = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@admin.get("/integrity", response_model=IntegrityReport)
async def integrity(store: DiskJsonDocumentStore = Depends(get_store)) -> IntegrityReport:
    return await store.verify_data_integrity()


@admin.get("/documents", response_model=list[DocumentInfo])
async def documents(store: DiskJsonDocumentStore = Depends(get_store)) -> list[DocumentInfo]:
    return store.describe_documents()


@admin.get("/backups", response_model=list[BackupInfo])
async def list_backups(backups: BackupManager = Depends(get_backups)) -> list[BackupInfo]:
    return await backups.list_backups()


@admin.post("/backups", response_model=BackupResult)
async def create_backup(backups: BackupManager = Depends(get_backups)) -> BackupResult:
    result = await backups.create_backup()
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "backup_failed")
    return result


@admin.get("/backups/status", response_model=BackupStatus)
async def backup_status(backups: BackupManager = Depends(get_backups)) -> BackupStatus:
    return await backups.get_backup_status()


@admin.post("/backups/cleanup", response_model=CleanupResult)
async def cleanup_backups(backups: BackupManager = Depends(get_backups)) -> CleanupResult:
    return await backups.cleanup_old_backups()


@admin.get("/backups/{timestamp}/verify", response_model=BackupVerification)
async def verify_backup(timestamp: str, backups: BackupManager = Depends(get_backups)) -> BackupVerification:
    result = await backups.verify_backup(timestamp)
    if result.error and not result.checks:
        raise HTTPException(status_code=404, detail=result.error)
    return result


@admin.post("/backups/{timestamp}/restore", response_model=RestoreResult)
async def restore_backup(timestamp: str, backups: BackupManager = Depends(get_backups)) -> RestoreResult:
    try:
        return await backups.restore_backup(timestamp)
    except BackupNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@admin.get("/export")
async def export_data(backups: BackupManager = Depends(get_backups)) -> dict[str, Any]:
    return await backups.export_data()


router.include_router(admin)
