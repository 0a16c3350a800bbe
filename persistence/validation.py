from __future__ import annotations

from pathlib import Path
from typing import Any

from .errors import DocumentValidationError
from .paths import Shape


def validate_document(data: Any, path: Path, shape: Shape = Shape.DOCUMENT) -> None:
    """
    Minimal root-shape check applied on every save and load.

    The common corruption symptom is a keyed document silently turning into
    `[]`, so MAPPING documents reject arrays outright.
    """
    if data is None or not isinstance(data, (dict, list)):
        raise DocumentValidationError(path, f"expected an object or array, got {type(data).__name__}")

    if shape is Shape.MAPPING and isinstance(data, list):
        raise DocumentValidationError(path, f"{path.name} should be an object, not an array")
