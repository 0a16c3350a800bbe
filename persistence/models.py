from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class LoadOutcome(str, Enum):
    CLEAN = "clean"
    RECOVERED_FROM_BACKUP = "recovered_from_backup"
    USED_DEFAULT = "used_default"


class LoadResult(BaseModel):
    """
    What a load actually did. `value` is always usable; `outcome` says where it came from:
      clean                 -> primary file parsed and validated
      recovered_from_backup -> primary was bad, `<file>.backup` was restored over it
      used_default          -> empty file, or primary and backup both unusable
    """

    value: Any
    outcome: LoadOutcome
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.outcome is not LoadOutcome.CLEAN


class FileSizeCheck(BaseModel):
    oversized: bool
    size: int


class DocumentCheck(BaseModel):
    document: str
    valid: bool
    size_mb: float | None = None
    error: str | None = None


class IntegrityReport(BaseModel):
    valid: bool
    results: list[DocumentCheck] = Field(default_factory=list)


class DocumentInfo(BaseModel):
    document: str
    filename: str
    path: str
    shape: str
    locked: bool


class BackupFailure(BaseModel):
    name: str
    error: str


class BackupResult(BaseModel):
    success: bool
    timestamp: str | None = None
    backup_dir: str | None = None
    backed_up: list[str] = Field(default_factory=list)
    failed: list[BackupFailure] = Field(default_factory=list)
    error: str | None = None


class BackupInfo(BaseModel):
    timestamp: str
    path: str
    files: int
    size: int
    created: datetime


class RestoreResult(BaseModel):
    success: bool
    restored: list[str] = Field(default_factory=list)
    failed: list[BackupFailure] = Field(default_factory=list)
    pre_restore_backup: str | None = None


class CleanupResult(BaseModel):
    deleted: int
    remaining: int


class LatestBackup(BaseModel):
    timestamp: str
    created: datetime
    files: int


class BackupStatus(BaseModel):
    total_backups: int
    latest_backup: LatestBackup | None = None
    retention_days: int
    auto_backup_hours: float
    scheduler_state: str


class FileCheck(BaseModel):
    file: str
    valid: bool
    error: str | None = None


class BackupVerification(BaseModel):
    valid: bool
    checks: list[FileCheck] = Field(default_factory=list)
    error: str | None = None
