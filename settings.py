from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Storage
    data_dir: Path
    backup_dir: Path
    backup_retention_days: int
    auto_backup_hours: float
    enable_backup_scheduler: bool

    # Write locks / cache
    write_lock_timeout_ms: int
    write_lock_poll_ms: int
    cache_ttl_ms: int
    max_file_size_mb: float

    # Logging
    log_level: str
    log_to_file: bool
    log_file_path: Path

    # Operator routes; empty means unauthenticated
    admin_token: str


def validate_settings(settings: Settings) -> Settings:
    errors: list[str] = []
    if settings.backup_retention_days < 1:
        errors.append("backup_retention_days must be >= 1")
    if settings.auto_backup_hours <= 0:
        errors.append("auto_backup_hours must be > 0")
    if settings.write_lock_timeout_ms <= 0:
        errors.append("write_lock_timeout_ms must be > 0")
    if settings.write_lock_poll_ms <= 0:
        errors.append("write_lock_poll_ms must be > 0")
    if settings.cache_ttl_ms < 0:
        errors.append("cache_ttl_ms must be >= 0")
    if errors:
        raise ValueError("Invalid configuration: " + "; ".join(errors))
    return settings


def get_settings() -> Settings:
    data_dir = Path(os.getenv("DATA_DIR", "./data"))
    backup_dir = Path(os.getenv("BACKUP_DIR", "./backups"))

    settings = Settings(
        data_dir=data_dir,
        backup_dir=backup_dir,
        backup_retention_days=_env_int("BACKUP_RETENTION_DAYS", 7),
        auto_backup_hours=_env_float("AUTO_BACKUP_HOURS", 24),
        enable_backup_scheduler=_env_bool("ENABLE_BACKUP_SCHEDULER", True),
        write_lock_timeout_ms=_env_int("WRITE_LOCK_TIMEOUT_MS", 5000),
        write_lock_poll_ms=_env_int("WRITE_LOCK_POLL_MS", 10),
        cache_ttl_ms=_env_int("CACHE_TTL_MS", 5000),
        max_file_size_mb=_env_float("MAX_FILE_SIZE_MB", 50),
        log_level=os.getenv("LOG_LEVEL", "info").strip().lower() or "info",
        log_to_file=_env_bool("LOG_TO_FILE", False),
        log_file_path=Path(os.getenv("LOG_FILE_PATH", "./logs/store.log")),
        admin_token=os.getenv("ADMIN_TOKEN", "").strip(),
    )
    return validate_settings(settings)
