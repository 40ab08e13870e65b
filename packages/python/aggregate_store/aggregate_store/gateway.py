"""Boundary between the aggregate mapper and a concrete document store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Protocol

from .criteria import CriteriaQuery


@dataclass(frozen=True)
class StoredDocument:
    """A document as handed to and returned by a gateway.

    - id: storage key
    - expiration: lifetime in seconds, 0 means the document never expires
    - body: tagged envelope or bare field map
    """

    id: str
    body: Dict[str, Any] = field(default_factory=dict)
    expiration: int = 0


@dataclass(frozen=True)
class QueryRow:
    """One criteria-query result: the storage key and its ``content`` payload."""

    key: str
    content: Any


class StoreGateway(Protocol):
    """Synchronous request/response operations the mapper needs from a store."""

    collection_name: str

    def get(self, doc_id: str) -> StoredDocument:
        """Return the document or raise ``NotFoundError``."""
        ...

    def upsert(self, document: StoredDocument) -> None:
        ...

    def remove(self, doc_id: str) -> None:
        """Delete the document or raise ``NotFoundError``."""
        ...

    def exists(self, doc_id: str) -> bool:
        ...

    def query(self, query: CriteriaQuery) -> Iterable[QueryRow]:
        ...

    def close(self, timeout: Optional[float] = None) -> None:
        ...
