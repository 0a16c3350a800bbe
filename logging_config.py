from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from settings import Settings

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JsonLinesFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message and any extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        doc = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                doc[key] = value
        if record.exc_info:
            doc["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(doc, default=str, ensure_ascii=False)


def parse_level(name: str) -> int:
    return _LEVELS.get(name.strip().lower(), logging.INFO)


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    root.setLevel(parse_level(settings.log_level))

    for handler in list(root.handlers):
        if getattr(handler, "_bookstore_handler", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"))
    console._bookstore_handler = True  # type: ignore[attr-defined]
    root.addHandler(console)

    if settings.log_to_file:
        try:
            settings.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.log_file_path, encoding="utf-8")
        except OSError as e:
            root.error("Failed to initialize file logging at %s: %r", settings.log_file_path, e)
            return
        file_handler.setFormatter(JsonLinesFormatter())
        file_handler._bookstore_handler = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)
        root.info("File logging initialized: %s", settings.log_file_path)
