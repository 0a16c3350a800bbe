from __future__ import annotations

from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def settings(tmp_path: Path):
    """
    Settings pointing every directory at a temp sandbox so tests never touch real ./data or ./backups.
    """
    from settings import Settings

    return Settings(
        data_dir=tmp_path / "data",
        backup_dir=tmp_path / "backups",
        backup_retention_days=7,
        auto_backup_hours=24,
        enable_backup_scheduler=False,
        write_lock_timeout_ms=5000,
        write_lock_poll_ms=5,
        cache_ttl_ms=5000,
        max_file_size_mb=50,
        log_level="debug",
        log_to_file=False,
        log_file_path=tmp_path / "logs" / "store.log",
        admin_token="",
    )


@pytest.fixture
def store(settings):
    from persistence.disk_store import DiskJsonDocumentStore

    return DiskJsonDocumentStore.from_settings(settings)


@pytest.fixture
def backups(store, settings):
    from persistence.backups import BackupManager

    return BackupManager.from_settings(store, settings)
