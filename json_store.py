from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def tmp_path_for(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".tmp")


def backup_path_for(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".backup")


def dumps_json(payload: Any, *, indent: int = 2, sort_keys: bool = False) -> str:
    return json.dumps(payload, indent=indent, sort_keys=sort_keys, ensure_ascii=False) + "\n"


def read_text(path: Path) -> str:
    """
    Read a JSON document's raw text.

    Missing files raise FileNotFoundError; callers decide what that means.
    """
    return path.read_text(encoding="utf-8")


def parse_json(raw: str) -> Any:
    return json.loads(raw)


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing files or empty files. Invalid JSON raises
    json.JSONDecodeError.
    """
    if not path.exists():
        return None
    raw = read_text(path)
    if not raw.strip():
        return None
    return parse_json(raw)


def atomic_write_json(path: Path, payload: Any, *, indent: int = 2, sort_keys: bool = False) -> int:
    """
    Atomically write JSON to disk by writing to a temp file then replacing.

    Serialization happens before the temp file is opened, so an unserializable
    payload never touches the filesystem. Returns the number of bytes written.
    """
    text = dumps_json(payload, indent=indent, sort_keys=sort_keys)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = tmp_path_for(path)
    try:
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    tmp_path.replace(path)
    return len(text.encode("utf-8"))
