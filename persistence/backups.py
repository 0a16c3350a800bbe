from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from json_store import parse_json, read_json, read_text, tmp_path_for
from settings import Settings

from .disk_store import DiskJsonDocumentStore
from .errors import BackupNotFoundError
from .models import (
    BackupFailure,
    BackupInfo,
    BackupResult,
    BackupStatus,
    BackupVerification,
    CleanupResult,
    FileCheck,
    LatestBackup,
    RestoreResult,
)
from .paths import ensure_dir, resolve_dir

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"


def make_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC with millisecond precision, `:` and `.` replaced so it is a safe directory name."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(name: str) -> datetime | None:
    try:
        return datetime.strptime(name, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _is_plain_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and Path(name).name == name


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class BackupManager:
    """
    Timestamped snapshots of every registered document, with retention pruning
    and an optional asyncio timer driving both.

    Snapshots copy the named document files without taking write locks; each
    file is only ever replaced by rename, so a copy is always a whole document.
    """

    def __init__(
        self,
        store: DiskJsonDocumentStore,
        backup_dir: Path,
        *,
        retention_days: int = 7,
        interval_hours: float = 24,
    ):
        self._store = store
        self._backup_dir = resolve_dir(Path(backup_dir))
        self.retention_days = retention_days
        self.interval_hours = interval_hours
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, store: DiskJsonDocumentStore, settings: Settings) -> "BackupManager":
        return cls(
            store,
            settings.backup_dir,
            retention_days=settings.backup_retention_days,
            interval_hours=settings.auto_backup_hours,
        )

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def scheduler_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------

    def _new_snapshot_dir(self) -> tuple[str, Path]:
        ensure_dir(self._backup_dir)
        now = datetime.now(timezone.utc)
        while True:
            timestamp = make_timestamp(now)
            target = self._backup_dir / timestamp
            try:
                target.mkdir()
                return timestamp, target
            except FileExistsError:
                now += timedelta(milliseconds=1)

    def _create_backup_sync(self) -> BackupResult:
        timestamp, target = self._new_snapshot_dir()
        backed_up: list[str] = []
        failed: list[BackupFailure] = []

        for spec in self._store.registry:
            try:
                shutil.copy2(spec.path, target / spec.filename)
                backed_up.append(spec.key.value)
            except FileNotFoundError:
                continue
            except OSError as e:
                failed.append(BackupFailure(name=spec.key.value, error=str(e)))

        if failed:
            logger.warning("Backup created with failures: %s backed_up=%s failed=%s", timestamp, backed_up, failed)
        else:
            logger.info("Backup created: %s backed_up=%s", timestamp, backed_up)
        return BackupResult(
            success=True,
            timestamp=timestamp,
            backup_dir=str(target),
            backed_up=backed_up,
            failed=failed,
        )

    async def create_backup(self) -> BackupResult:
        try:
            return await asyncio.to_thread(self._create_backup_sync)
        except OSError as e:
            logger.error("Backup creation failed: %s", e)
            return BackupResult(success=False, error=str(e))

    def _created_at(self, entry: Path) -> datetime:
        parsed = parse_timestamp(entry.name)
        if parsed is not None:
            return parsed
        st = entry.stat()
        ts = getattr(st, "st_birthtime", None) or st.st_mtime
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    def _list_backups_sync(self) -> list[BackupInfo]:
        ensure_dir(self._backup_dir)
        backups: list[BackupInfo] = []
        for entry in self._backup_dir.iterdir():
            if not entry.is_dir():
                continue
            files = [p for p in entry.iterdir() if p.is_file()]
            backups.append(
                BackupInfo(
                    timestamp=entry.name,
                    path=str(entry),
                    files=len(files),
                    size=sum(p.stat().st_size for p in files),
                    created=self._created_at(entry),
                )
            )
        backups.sort(key=lambda b: b.created, reverse=True)
        return backups

    async def list_backups(self) -> list[BackupInfo]:
        try:
            return await asyncio.to_thread(self._list_backups_sync)
        except OSError as e:
            logger.error("Failed to list backups: %s", e)
            return []

    def _snapshot_dir(self, timestamp: str) -> Path:
        if not _is_plain_name(timestamp):
            raise BackupNotFoundError(timestamp)
        target = self._backup_dir / timestamp
        if not target.is_dir():
            raise BackupNotFoundError(timestamp)
        return target

    @staticmethod
    def _restore_file_sync(src: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = tmp_path_for(dest)
        shutil.copyfile(src, tmp)
        tmp.replace(dest)

    async def restore_backup(self, timestamp: str) -> RestoreResult:
        """
        Copy every document in snapshot `timestamp` back over the live files.

        A fresh snapshot of the current state is taken first so a restore can
        itself be undone. Each file is replaced under its write lock.
        """
        try:
            source = self._snapshot_dir(timestamp)
        except BackupNotFoundError as e:
            logger.error("Backup restoration failed: %s", e)
            raise

        pre_restore = await self.create_backup()
        logger.info("Pre-restore backup created: %s", pre_restore.timestamp)

        restored: list[str] = []
        failed: list[BackupFailure] = []
        for spec in self._store.registry:
            src = source / spec.filename
            try:
                async with self._store.locks.hold(spec.path):
                    await asyncio.to_thread(self._restore_file_sync, src, spec.path)
                restored.append(spec.key.value)
            except (OSError, TimeoutError) as e:
                failed.append(BackupFailure(name=spec.key.value, error=str(e)))

        self._store.invalidate_cache()
        logger.info("Backup restored: %s restored=%s failed=%s", timestamp, restored, failed)
        return RestoreResult(
            success=True,
            restored=restored,
            failed=failed,
            pre_restore_backup=pre_restore.timestamp,
        )

    async def cleanup_old_backups(self) -> CleanupResult:
        backups = await self.list_backups()
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)
        to_delete = [b for b in backups if b.created < cutoff]

        deleted = 0
        for backup in to_delete:
            try:
                await asyncio.to_thread(shutil.rmtree, backup.path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to delete old backup %s: %s", backup.timestamp, e)
                continue
            logger.info("Old backup deleted: %s", backup.timestamp)
            deleted += 1

        return CleanupResult(deleted=deleted, remaining=len(backups) - deleted)

    async def get_backup_status(self) -> BackupStatus:
        backups = await self.list_backups()
        latest = backups[0] if backups else None
        return BackupStatus(
            total_backups=len(backups),
            latest_backup=(
                LatestBackup(timestamp=latest.timestamp, created=latest.created, files=latest.files)
                if latest
                else None
            ),
            retention_days=self.retention_days,
            auto_backup_hours=self.interval_hours,
            scheduler_state=self._state.value,
        )

    def _verify_backup_sync(self, timestamp: str) -> BackupVerification:
        target = self._snapshot_dir(timestamp)
        checks: list[FileCheck] = []
        for p in sorted(target.iterdir()):
            if not p.is_file():
                continue
            try:
                parse_json(read_text(p))
                checks.append(FileCheck(file=p.name, valid=True))
            except (OSError, ValueError) as e:
                checks.append(FileCheck(file=p.name, valid=False, error=str(e)))
        return BackupVerification(valid=all(c.valid for c in checks), checks=checks)

    async def verify_backup(self, timestamp: str) -> BackupVerification:
        try:
            return await asyncio.to_thread(self._verify_backup_sync, timestamp)
        except (OSError, BackupNotFoundError) as e:
            logger.error("Backup verification failed: %s", e)
            return BackupVerification(valid=False, error=str(e))

    def _export_sync(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for spec in self._store.registry:
            try:
                # missing or empty documents export as None
                data[spec.key.value] = read_json(spec.path)
            except (OSError, ValueError) as e:
                logger.warning("Failed to export %s: %s", spec.key.value, e)
                data[spec.key.value] = None
        return {
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_FORMAT_VERSION,
            "data": data,
        }

    async def export_data(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._export_sync)

    # ------------------------------------------------------------------
    # scheduler
    # ------------------------------------------------------------------

    async def run_once(self) -> tuple[BackupResult, CleanupResult]:
        self._state = SchedulerState.RUNNING
        try:
            result = await self.create_backup()
            cleanup = await self.cleanup_old_backups()
            return result, cleanup
        finally:
            self._state = SchedulerState.IDLE

    async def _run_forever(self) -> None:
        interval = self.interval_hours * 60 * 60
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Backup pass failed")
            await asyncio.sleep(interval)

    def start(self) -> None:
        if self.scheduler_running:
            return
        logger.info("Backup scheduler started (every %s h, retention %s d)", self.interval_hours, self.retention_days)
        self._task = asyncio.create_task(self._run_forever(), name="backup-scheduler")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Backup scheduler stopped")
