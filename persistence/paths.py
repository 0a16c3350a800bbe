from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Union

from .errors import UnknownDocumentError


def project_root() -> Path:
    # persistence/paths.py -> persistence -> project root
    return Path(__file__).resolve().parents[1]


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_dir(path: Path) -> Path:
    """Relative directories are anchored at the project root."""
    return (path if path.is_absolute() else project_root() / path).resolve()


class Shape(str, Enum):
    # any JSON container: object or array
    DOCUMENT = "document"
    # object keyed by user/entity ID; never an array
    MAPPING = "mapping"


class DocumentKey(str, Enum):
    CLUB = "CLUB"
    TRACKERS = "TRACKERS"
    READING_LOGS = "READING_LOGS"
    QUOTES = "QUOTES"
    STATS = "STATS"
    FAVORITES = "FAVORITES"
    GOODREADS_LINKS = "GOODREADS_LINKS"


@dataclass(frozen=True)
class DocumentSpec:
    key: DocumentKey
    filename: str
    shape: Shape
    path: Path

    def default(self) -> dict:
        return {}


DOCUMENT_LAYOUT: Mapping[DocumentKey, tuple[str, Shape]] = MappingProxyType(
    {
        DocumentKey.CLUB: ("club.json", Shape.DOCUMENT),
        DocumentKey.TRACKERS: ("trackers.json", Shape.MAPPING),
        DocumentKey.READING_LOGS: ("reading_logs.json", Shape.MAPPING),
        DocumentKey.QUOTES: ("quotes.json", Shape.MAPPING),
        DocumentKey.STATS: ("stats.json", Shape.DOCUMENT),
        DocumentKey.FAVORITES: ("favorites.json", Shape.DOCUMENT),
        DocumentKey.GOODREADS_LINKS: ("goodreads_links.json", Shape.MAPPING),
    }
)

# Older command handlers still use these names.
ALIASES: Mapping[str, DocumentKey] = MappingProxyType(
    {
        "BOOKS": DocumentKey.TRACKERS,
        "USERS": DocumentKey.STATS,
        "ACTIVITY": DocumentKey.READING_LOGS,
    }
)

DocumentRef = Union[DocumentKey, str, Path]


class DocumentRegistry:
    """
    Fixed mapping from logical document name to file location under one data directory.

    Built once per process; there is no way to re-point a key afterwards.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = resolve_dir(Path(data_dir))
        specs = {
            key: DocumentSpec(key=key, filename=filename, shape=shape, path=self._data_dir / filename)
            for key, (filename, shape) in DOCUMENT_LAYOUT.items()
        }
        self._specs: Mapping[DocumentKey, DocumentSpec] = MappingProxyType(specs)
        self._by_filename = MappingProxyType({s.filename: s for s in specs.values()})
        self._by_path = MappingProxyType({str(s.path): s for s in specs.values()})

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def specs(self) -> Mapping[DocumentKey, DocumentSpec]:
        return self._specs

    def __iter__(self) -> Iterator[DocumentSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, key: DocumentKey | str) -> DocumentSpec:
        if isinstance(key, DocumentKey):
            return self._specs[key]
        name = key.strip()
        upper = name.upper()
        if upper in DocumentKey.__members__:
            return self._specs[DocumentKey[upper]]
        if upper in ALIASES:
            return self._specs[ALIASES[upper]]
        if name in self._by_filename:
            return self._by_filename[name]
        raise UnknownDocumentError(f"Unknown document: {key!r}")

    def spec_for_path(self, path: Path) -> DocumentSpec | None:
        return self._by_path.get(str(path.resolve()))

    def resolve(self, ref: DocumentRef) -> tuple[Path, DocumentSpec | None]:
        """
        Turn a key, key name, file name or path into (absolute path, spec or None).

        Relative paths (and strings containing a separator) are anchored at the
        data directory, not the working directory. A relative path that starts
        with the data directory's own name, like "data/trackers.json", would
        land in a nested copy of it and is rejected. Paths outside the registry
        are otherwise allowed; they get the generic shape rule.
        """
        if isinstance(ref, Path):
            if not ref.is_absolute() and ref.parts and ref.parts[0] == self._data_dir.name:
                raise UnknownDocumentError(
                    f"Relative path {str(ref)!r} repeats the data directory; paths are relative to {self._data_dir}"
                )
            path = ref if ref.is_absolute() else (self._data_dir / ref)
            path = path.resolve()
            return path, self.spec_for_path(path)
        if isinstance(ref, str) and ("/" in ref or "\\" in ref):
            return self.resolve(Path(ref))
        spec = self.get(ref)
        return spec.path, spec
