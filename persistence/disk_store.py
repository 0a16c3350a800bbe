from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import shutil
import time
from pathlib import Path
from typing import Any

from json_store import atomic_write_json, backup_path_for, dumps_json, parse_json, read_text, tmp_path_for
from settings import Settings

from .errors import WriteLockTimeout
from .interfaces import DocumentStore, UpdateFn
from .locks import WriteLockManager
from .models import DocumentCheck, DocumentInfo, FileSizeCheck, IntegrityReport, LoadOutcome, LoadResult
from .paths import DocumentRef, DocumentRegistry, DocumentSpec, Shape
from .validation import validate_document

logger = logging.getLogger(__name__)


class DiskJsonDocumentStore(DocumentStore):
    """
    Named JSON documents on disk with per-path write locks, atomic writes and
    backup fallback on read.

    - Reads never raise on corruption: they fall back to `<file>.backup`, then to the default.
    - Writes hold the path's write lock, validate, keep a `.backup` copy, then
      write `<file>.tmp` and rename it over the document.
    - File I/O runs in worker threads; lock bookkeeping stays on the event loop.
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        lock_timeout_ms: int = 5000,
        lock_poll_ms: int = 10,
        cache_ttl_ms: int = 5000,
        max_file_size_mb: float = 50,
    ):
        self._registry = DocumentRegistry(data_dir)
        self._locks = WriteLockManager(timeout_ms=lock_timeout_ms, poll_ms=lock_poll_ms)
        self._cache: dict[str, tuple[float, Any]] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._cache_ttl = cache_ttl_ms / 1000
        self._max_file_size = int(max_file_size_mb * 1024 * 1024)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiskJsonDocumentStore":
        return cls(
            settings.data_dir,
            lock_timeout_ms=settings.write_lock_timeout_ms,
            lock_poll_ms=settings.write_lock_poll_ms,
            cache_ttl_ms=settings.cache_ttl_ms,
            max_file_size_mb=settings.max_file_size_mb,
        )

    @property
    def registry(self) -> DocumentRegistry:
        return self._registry

    @property
    def locks(self) -> WriteLockManager:
        return self._locks

    @property
    def data_dir(self) -> Path:
        return self._registry.data_dir

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _resolve(self, target: DocumentRef) -> tuple[Path, DocumentSpec | None]:
        return self._registry.resolve(target)

    @staticmethod
    def _shape(spec: DocumentSpec | None) -> Shape:
        return spec.shape if spec is not None else Shape.DOCUMENT

    @staticmethod
    def _default(spec: DocumentSpec | None, default: Any) -> Any:
        if default is not None:
            return default
        return spec.default() if spec is not None else {}

    def _ensure_exists_sync(self, path: Path, default: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return
        try:
            # "x" so a writer that got there first is never clobbered
            with path.open("x", encoding="utf-8") as f:
                f.write(dumps_json(default))
        except FileExistsError:
            return
        logger.info("Created data file %s", path.name)

    def _check_size_sync(self, path: Path) -> FileSizeCheck:
        try:
            size = path.stat().st_size
        except OSError:
            return FileSizeCheck(oversized=False, size=0)
        if size > self._max_file_size:
            logger.warning("Large data file detected: %s (%.2f MB)", path.name, size / 1024 / 1024)
            return FileSizeCheck(oversized=True, size=size)
        return FileSizeCheck(oversized=False, size=size)

    def _read_primary_sync(self, path: Path, shape: Shape, default: Any) -> tuple[LoadResult | None, str | None]:
        """Returns (result, None) when the primary is usable, else (None, error text)."""
        try:
            self._ensure_exists_sync(path, default)
            self._check_size_sync(path)
            raw = read_text(path)
            if not raw.strip():
                logger.warning("Empty data file, using default: %s", path.name)
                result = LoadResult(value=copy.deepcopy(default), outcome=LoadOutcome.USED_DEFAULT, error="empty file")
                return result, None
            data = parse_json(raw)
            validate_document(data, path, shape)
            return LoadResult(value=data, outcome=LoadOutcome.CLEAN), None
        except (OSError, ValueError) as e:
            # JSONDecodeError, UnicodeDecodeError and DocumentValidationError are all ValueErrors
            return None, str(e)

    def _load_sync(self, path: Path, shape: Shape, default: Any) -> LoadResult:
        """Caller must already hold the write lock for `path`: a bad primary is restored from `.backup`."""
        result, primary_error = self._read_primary_sync(path, shape, default)
        if result is not None:
            return result
        logger.error("Failed to load JSON %s: %s", path.name, primary_error)

        backup = backup_path_for(path)
        try:
            logger.info("Attempting to load backup for %s", path.name)
            data = parse_json(read_text(backup))
            validate_document(data, path, shape)
            tmp = tmp_path_for(path)
            shutil.copyfile(backup, tmp)
            tmp.replace(path)
            logger.info("Restored %s from backup", path.name)
            return LoadResult(value=data, outcome=LoadOutcome.RECOVERED_FROM_BACKUP, error=primary_error)
        except (OSError, ValueError) as e:
            logger.error("Backup restoration failed for %s: %s", path.name, e)
            return LoadResult(value=copy.deepcopy(default), outcome=LoadOutcome.USED_DEFAULT, error=primary_error)

    def _write_sync(self, path: Path, shape: Shape, data: Any, default: Any) -> None:
        self._ensure_exists_sync(path, default)
        validate_document(data, path, shape)

        try:
            shutil.copyfile(path, backup_path_for(path))
        except OSError as e:
            logger.warning("Backup copy skipped for %s: %r", path.name, e)

        written = atomic_write_json(path, data)
        self._check_size_sync(path)
        logger.debug("Saved data file %s (%.2f KB)", path.name, written / 1024)

    async def _save_locked(self, path: Path, spec: DocumentSpec | None, data: Any) -> None:
        """Caller must already hold the write lock for `path`."""
        try:
            await asyncio.to_thread(self._write_sync, path, self._shape(spec), data, self._default(spec, None))
        except Exception as e:
            logger.error("Failed to save JSON %s: %s", path.name, e)
            raise
        finally:
            self._invalidate(str(path))

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def ensure_exists(self, target: DocumentRef, default: Any = None) -> Path:
        path, spec = self._resolve(target)
        await asyncio.to_thread(self._ensure_exists_sync, path, self._default(spec, default))
        return path

    async def ensure_all_files(self) -> None:
        for spec in self._registry:
            await asyncio.to_thread(self._ensure_exists_sync, spec.path, spec.default())
        logger.info("Data files initialized in %s", self.data_dir)

    async def load_document(self, target: DocumentRef, default: Any = None) -> LoadResult:
        path, spec = self._resolve(target)
        shape, fallback = self._shape(spec), self._default(spec, default)
        result, primary_error = await asyncio.to_thread(self._read_primary_sync, path, shape, fallback)
        if result is not None:
            return result

        # Restoring rewrites the primary, so it is serialized with writers.
        # _load_sync re-reads the primary first: a writer may have fixed it meanwhile.
        try:
            async with self._locks.hold(path):
                result = await asyncio.to_thread(self._load_sync, path, shape, fallback)
        except WriteLockTimeout as e:
            logger.error("Backup recovery skipped for %s: %s", path.name, e)
            return LoadResult(value=copy.deepcopy(fallback), outcome=LoadOutcome.USED_DEFAULT, error=primary_error)
        if result.outcome is LoadOutcome.RECOVERED_FROM_BACKUP:
            self._invalidate(str(path))
        return result

    async def load_json(self, target: DocumentRef, default: Any = None) -> Any:
        result = await self.load_document(target, default)
        return result.value

    async def load_json_cached(self, target: DocumentRef, default: Any = None) -> Any:
        path, _ = self._resolve(target)
        key = str(path)
        cached = self._cache.get(key)
        if cached is not None and time.monotonic() - cached[0] < self._cache_ttl:
            logger.debug("Cache hit: %s", path.name)
            return copy.deepcopy(cached[1])

        generation = self._generation(key)
        value = await self.load_json(path, default)
        # a save or invalidation during the load makes this value stale
        if self._generation(key) == generation:
            self._cache[key] = (time.monotonic(), copy.deepcopy(value))
        return value

    def _generation(self, key: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def _invalidate(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1
        self._cache.pop(key, None)

    def invalidate_cache(self, target: DocumentRef | None = None) -> None:
        if target is None:
            self._epoch += 1
            self._cache.clear()
            return
        path, _ = self._resolve(target)
        self._invalidate(str(path))

    async def save_json(self, target: DocumentRef, data: Any) -> None:
        path, spec = self._resolve(target)
        try:
            await self._locks.acquire(path)
        except Exception as e:
            logger.error("Failed to save JSON %s: %s", path.name, e)
            raise
        try:
            await self._save_locked(path, spec, data)
        finally:
            self._locks.release(path)

    async def update_json(self, target: DocumentRef, update_fn: UpdateFn) -> Any:
        path, spec = self._resolve(target)
        async with self._locks.hold(path):
            current = await asyncio.to_thread(self._load_sync, path, self._shape(spec), self._default(spec, None))
            updated = update_fn(current.value)
            if inspect.isawaitable(updated):
                updated = await updated
            await self._save_locked(path, spec, updated)
            return updated

    async def clear_file(self, target: DocumentRef, as_array: bool = False) -> None:
        blank: Any = [] if as_array else {}
        await self.save_json(target, blank)
        path, _ = self._resolve(target)
        logger.info("Cleared data file %s", path.name)

    async def check_file_size(self, target: DocumentRef) -> FileSizeCheck:
        path, _ = self._resolve(target)
        return await asyncio.to_thread(self._check_size_sync, path)

    def _cleanup_temp_files_sync(self) -> int:
        removed = 0
        for tmp in sorted(self.data_dir.glob("*.tmp")):
            # an in-flight write owns its temp file
            if self._locks.is_locked(tmp.with_suffix("")):
                continue
            tmp.unlink(missing_ok=True)
            logger.debug("Removed temp file %s", tmp.name)
            removed += 1
        return removed

    async def cleanup_temp_files(self) -> int:
        try:
            removed = await asyncio.to_thread(self._cleanup_temp_files_sync)
        except OSError as e:
            logger.error("Temp file cleanup failed: %s", e)
            return 0
        if removed:
            logger.info("Removed %d orphaned temp file(s)", removed)
        return removed

    def _check_document_sync(self, spec: DocumentSpec) -> DocumentCheck:
        name = spec.key.value
        try:
            raw = read_text(spec.path)
            if not raw.strip():
                return DocumentCheck(document=name, valid=False, error="empty file")
            validate_document(parse_json(raw), spec.path, spec.shape)
            size = spec.path.stat().st_size
        except (OSError, ValueError) as e:
            return DocumentCheck(document=name, valid=False, error=str(e))
        return DocumentCheck(document=name, valid=True, size_mb=round(size / 1024 / 1024, 2))

    async def verify_data_integrity(self) -> IntegrityReport:
        """
        Parse and validate every registered document's primary file.

        Diagnostics only: nothing is restored or rewritten here.
        """
        results = [await asyncio.to_thread(self._check_document_sync, spec) for spec in self._registry]
        report = IntegrityReport(valid=all(r.valid for r in results), results=results)
        logger.info(
            "Data integrity check completed: all_valid=%s invalid=%s",
            report.valid,
            [r.document for r in results if not r.valid],
        )
        return report

    def describe_documents(self) -> list[DocumentInfo]:
        return [
            DocumentInfo(
                document=spec.key.value,
                filename=spec.filename,
                path=str(spec.path),
                shape=spec.shape.value,
                locked=self._locks.is_locked(spec.path),
            )
            for spec in self._registry
        ]
