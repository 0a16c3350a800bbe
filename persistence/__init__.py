from __future__ import annotations

from .backups import BackupManager, SchedulerState
from .disk_store import DiskJsonDocumentStore
from .errors import (
    BackupError,
    BackupNotFoundError,
    DocumentValidationError,
    StoreError,
    UnknownDocumentError,
    WriteLockTimeout,
)
from .interfaces import DocumentStore
from .models import IntegrityReport, LoadOutcome, LoadResult
from .paths import DocumentKey, DocumentRegistry, Shape

__all__ = [
    "BackupManager",
    "SchedulerState",
    "DiskJsonDocumentStore",
    "DocumentStore",
    "DocumentKey",
    "DocumentRegistry",
    "Shape",
    "IntegrityReport",
    "LoadOutcome",
    "LoadResult",
    "StoreError",
    "WriteLockTimeout",
    "DocumentValidationError",
    "UnknownDocumentError",
    "BackupError",
    "BackupNotFoundError",
]
