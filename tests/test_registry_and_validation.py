from __future__ import annotations

from pathlib import Path

import pytest

from persistence.errors import DocumentValidationError, UnknownDocumentError
from persistence.paths import DocumentKey, DocumentRegistry, Shape
from persistence.validation import validate_document


def test_registry_maps_every_key_under_data_dir(tmp_path):
    registry = DocumentRegistry(tmp_path / "data")

    assert len(registry) == len(DocumentKey)
    assert registry.get(DocumentKey.TRACKERS).path == (tmp_path / "data" / "trackers.json").resolve()
    assert registry.get("goodreads_links").filename == "goodreads_links.json"
    assert registry.get("club.json").key is DocumentKey.CLUB


def test_registry_aliases():
    registry = DocumentRegistry(Path("data"))

    assert registry.get("BOOKS").key is DocumentKey.TRACKERS
    assert registry.get("USERS").key is DocumentKey.STATS
    assert registry.get("activity").key is DocumentKey.READING_LOGS


def test_registry_unknown_name_raises(tmp_path):
    registry = DocumentRegistry(tmp_path)
    with pytest.raises(UnknownDocumentError):
        registry.get("NOPE")


def test_registry_mapping_is_read_only(tmp_path):
    registry = DocumentRegistry(tmp_path)
    with pytest.raises(TypeError):
        registry.specs[DocumentKey.CLUB] = None  # type: ignore[index]


def test_resolve_paths_and_unregistered_files(tmp_path):
    registry = DocumentRegistry(tmp_path)

    path, spec = registry.resolve(tmp_path / "trackers.json")
    assert spec is not None and spec.key is DocumentKey.TRACKERS

    path, spec = registry.resolve(Path("scratch.json"))
    assert path == (tmp_path / "scratch.json").resolve()
    assert spec is None


def test_shapes_are_tagged_per_document(tmp_path):
    registry = DocumentRegistry(tmp_path)
    assert registry.get(DocumentKey.TRACKERS).shape is Shape.MAPPING
    assert registry.get(DocumentKey.READING_LOGS).shape is Shape.MAPPING
    assert registry.get(DocumentKey.CLUB).shape is Shape.DOCUMENT


@pytest.mark.parametrize("value", [None, "text", 3, True])
def test_validator_rejects_non_containers(value):
    with pytest.raises(DocumentValidationError):
        validate_document(value, Path("club.json"))


def test_validator_mapping_rejects_arrays():
    with pytest.raises(DocumentValidationError, match="trackers.json should be an object"):
        validate_document([], Path("trackers.json"), Shape.MAPPING)

    validate_document({"u1": {"tracked": []}}, Path("trackers.json"), Shape.MAPPING)


def test_validator_document_accepts_arrays_and_objects():
    validate_document([], Path("club.json"), Shape.DOCUMENT)
    validate_document({}, Path("club.json"), Shape.DOCUMENT)


def test_relative_paths_are_anchored_at_data_dir(tmp_path):
    registry = DocumentRegistry(tmp_path / "data")

    path, spec = registry.resolve("nested/scratch.json")
    assert path == (tmp_path / "data" / "nested" / "scratch.json").resolve()
    assert spec is None

    with pytest.raises(UnknownDocumentError, match="repeats the data directory"):
        registry.resolve("./data/trackers.json")
    with pytest.raises(UnknownDocumentError):
        registry.resolve(Path("data") / "trackers.json")

    # absolute paths into the data directory still find the registered document
    _, spec = registry.resolve(tmp_path / "data" / "trackers.json")
    assert spec is not None and spec.key is DocumentKey.TRACKERS
