"""Generic mapping of typed aggregates onto a schemaless document store.

Example usage:

    from aggregate_store import Aggregate, AggregateManager, MISSING, document_type

    @document_type("user")
    class User(Aggregate):
        name: str
        nickname: Optional[str] = None

    with AggregateManager.from_settings() as manager:
        manager.save(User(id="u1", name="Ann"))
        manager.find_all_by_criteria(User, {"name": "Ann", "nickname": MISSING})
"""

from .codec import decode, encode
from .criteria import MISSING, CriteriaQuery, Operator, Predicate, build_criteria_query
from .errors import (
    AggregateStoreError,
    ArgumentError,
    ConfigurationError,
    NotFoundError,
    SerializationError,
    StoreClosedError,
)
from .gateway import QueryRow, StoredDocument, StoreGateway
from .manager import AggregateManager
from .memory import InMemoryStoreGateway
from .metadata import TypeMetadata, document_type, expires_after, resolve_metadata
from .models import Aggregate, QueryableDateTime
from .mongo import MongoStoreGateway
from .settings import StoreSettings, settings

__all__ = [
    "Aggregate",
    "AggregateManager",
    "AggregateStoreError",
    "ArgumentError",
    "ConfigurationError",
    "CriteriaQuery",
    "InMemoryStoreGateway",
    "MISSING",
    "MongoStoreGateway",
    "NotFoundError",
    "Operator",
    "Predicate",
    "QueryRow",
    "QueryableDateTime",
    "SerializationError",
    "StoreClosedError",
    "StoreGateway",
    "StoreSettings",
    "StoredDocument",
    "TypeMetadata",
    "build_criteria_query",
    "decode",
    "document_type",
    "encode",
    "expires_after",
    "resolve_metadata",
    "settings",
]
