from __future__ import annotations

from pathlib import Path


class StoreError(Exception):
    """Base document store error"""


class WriteLockTimeout(StoreError, TimeoutError):
    def __init__(self, path: Path, timeout_ms: int):
        self.path = path
        self.timeout_ms = timeout_ms
        super().__init__(f"Write lock timeout for {path.name} after {timeout_ms}ms")


class DocumentValidationError(StoreError, ValueError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid JSON structure in {path.name}: {reason}")


class UnknownDocumentError(StoreError, LookupError):
    """Name does not resolve to a registered document"""


class BackupError(StoreError):
    pass


class BackupNotFoundError(BackupError):
    def __init__(self, timestamp: str):
        self.timestamp = timestamp
        super().__init__(f"Backup {timestamp} not found")
