from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, Union

from .models import IntegrityReport, LoadResult
from .paths import DocumentRef

UpdateFn = Callable[[Any], Union[Any, Awaitable[Any]]]


class DocumentStore(Protocol):
    """
    What command handlers see: whole named JSON documents, loaded and saved as values.
    """

    async def load_document(self, target: DocumentRef, default: Any = None) -> LoadResult:
        """Load a document and report whether it was clean, recovered or defaulted."""
        ...

    async def load_json(self, target: DocumentRef, default: Any = None) -> Any:
        """Load and return the document value (never raises on corruption)."""
        ...

    async def save_json(self, target: DocumentRef, data: Any) -> None:
        """Persist the full document atomically."""
        ...

    async def update_json(self, target: DocumentRef, update_fn: UpdateFn) -> Any:
        """Read-modify-write under the document's write lock; returns the new value."""
        ...

    async def clear_file(self, target: DocumentRef, as_array: bool = False) -> None:
        ...

    async def ensure_all_files(self) -> None:
        ...

    async def verify_data_integrity(self) -> IntegrityReport:
        ...
