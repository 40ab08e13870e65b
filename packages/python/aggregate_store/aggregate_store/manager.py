"""Generic save/find/query/delete façade over a document store gateway."""

from __future__ import annotations

from typing import List, Optional, Type, TypeVar

from loguru import logger

from .codec import decode, encode, from_field_map
from .criteria import Criteria, build_criteria_query
from .errors import ArgumentError
from .gateway import StoreGateway, StoredDocument
from .metadata import resolve_metadata
from .models import Aggregate
from .mongo import MongoStoreGateway
from .settings import StoreSettings, settings as default_settings

T = TypeVar("T", bound=Aggregate)


class AggregateManager:
    """
    Maps aggregates onto documents of a single store collection.

    The manager keeps no per-call state; every read goes to the store.
    Use it as a context manager (or call ``close``) so the underlying
    collection handle is released on every exit path.
    """

    def __init__(self, gateway: StoreGateway, *, close_timeout: Optional[float] = None) -> None:
        self._gateway = gateway
        self._close_timeout = (
            close_timeout if close_timeout is not None else default_settings.close_timeout_seconds
        )

    @classmethod
    def from_settings(cls, store_settings: Optional[StoreSettings] = None) -> "AggregateManager":
        cfg = store_settings or default_settings
        gateway = MongoStoreGateway.from_settings(cfg)
        return cls(gateway, close_timeout=cfg.close_timeout_seconds)

    @property
    def gateway(self) -> StoreGateway:
        return self._gateway

    # ---------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------
    def save(self, aggregate: Aggregate) -> None:
        """Create or replace the document stored under ``aggregate.id``."""

        if not aggregate.id:
            raise ArgumentError(f"Cannot save {type(aggregate).__name__} without an id")
        metadata = resolve_metadata(type(aggregate))
        body = encode(aggregate)
        logger.debug(f"Saving {type(aggregate).__name__} {aggregate.id!r}")
        self._gateway.upsert(
            StoredDocument(id=aggregate.id, body=body, expiration=metadata.expiration_seconds)
        )

    def delete(self, aggregate_id: str) -> None:
        """Remove a document; raises ``NotFoundError`` when it does not exist."""

        logger.debug(f"Deleting {aggregate_id!r}")
        self._gateway.remove(aggregate_id)

    # ---------------------------------------------------------
    # READ
    # ---------------------------------------------------------
    def exists(self, aggregate_id: str) -> bool:
        return self._gateway.exists(aggregate_id)

    def find(self, aggregate_id: str, target: Type[T]) -> T:
        """Load ``aggregate_id`` as ``target``; raises ``NotFoundError`` when absent."""

        document = self._gateway.get(aggregate_id)
        return decode(document.body, target, document.id)

    def find_optional(self, aggregate_id: str, target: Type[T]) -> Optional[T]:
        """
        Like ``find`` but returns None when the document does not exist.

        Existence is checked with a separate request, so a concurrent delete
        between the two calls still surfaces as ``NotFoundError``.
        """

        if not self._gateway.exists(aggregate_id):
            return None
        return self.find(aggregate_id, target)

    def find_all_by_criteria(
        self,
        target: Type[T],
        criteria: Optional[Criteria] = None,
    ) -> List[T]:
        """Return every ``target`` document whose content matches ``criteria``.

        Values equal to ``MISSING`` match documents where the field is absent;
        ``None`` matches documents where it is stored as null.
        """

        query = build_criteria_query(
            target, criteria, collection=self._gateway.collection_name
        )
        logger.debug(f"Querying {target.__name__}: {query.statement} with {dict(query.params)}")
        return [from_field_map(row.content, target, row.key) for row in self._gateway.query(query)]

    # ---------------------------------------------------------
    # LIFECYCLE
    # ---------------------------------------------------------
    def close(self, timeout: Optional[float] = None) -> None:
        self._gateway.close(timeout if timeout is not None else self._close_timeout)

    def __enter__(self) -> "AggregateManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
