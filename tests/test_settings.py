from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import pytest

from logging_config import JsonLinesFormatter, configure_logging, parse_level
from settings import get_settings, validate_settings


def test_defaults(monkeypatch):
    for name in ("DATA_DIR", "BACKUP_DIR", "BACKUP_RETENTION_DAYS", "AUTO_BACKUP_HOURS", "LOG_LEVEL", "ADMIN_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    s = get_settings()
    assert s.data_dir == Path("./data")
    assert s.backup_dir == Path("./backups")
    assert s.backup_retention_days == 7
    assert s.auto_backup_hours == 24
    assert s.write_lock_timeout_ms == 5000
    assert s.log_level == "info"
    assert s.admin_token == ""


def test_env_overrides_and_bad_numbers_fall_back(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "d"))
    monkeypatch.setenv("BACKUP_RETENTION_DAYS", "14")
    monkeypatch.setenv("AUTO_BACKUP_HOURS", "not-a-number")
    monkeypatch.setenv("ENABLE_BACKUP_SCHEDULER", "off")

    s = get_settings()
    assert s.data_dir == tmp_path / "d"
    assert s.backup_retention_days == 14
    assert s.auto_backup_hours == 24
    assert s.enable_backup_scheduler is False


def test_validate_rejects_bad_retention(settings):
    with pytest.raises(ValueError, match="backup_retention_days"):
        validate_settings(replace(settings, backup_retention_days=0))


def test_parse_level():
    assert parse_level("warn") == logging.WARNING
    assert parse_level("DEBUG") == logging.DEBUG
    assert parse_level("bogus") == logging.INFO


def test_file_logging_writes_json_lines(settings):
    log_path = settings.log_file_path
    configure_logging(replace(settings, log_to_file=True))
    try:
        logging.getLogger("persistence.test").info("Saved data file %s", "club.json", extra={"sizeKB": 1.5})
        for handler in logging.getLogger().handlers:
            handler.flush()
        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert any('"message": "Saved data file club.json"' in line and '"sizeKB": 1.5' in line for line in lines)
    finally:
        configure_logging(settings)


def test_json_formatter_includes_level_and_logger():
    record = logging.LogRecord("persistence.disk_store", logging.WARNING, __file__, 1, "Large file %s", ("x",), None)
    out = JsonLinesFormatter().format(record)
    assert '"level": "WARNING"' in out
    assert '"logger": "persistence.disk_store"' in out
    assert '"message": "Large file x"' in out
