"""MongoDB store gateway built on the synchronous pymongo driver.

Physical layout of a stored document::

    {"_id": <id>, **body, "_expires_at": <utc datetime, only when expiring>}

``_id`` and ``_expires_at`` are reserved and never returned as part of a body.
"""

from __future__ import annotations

import math
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from loguru import logger
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection

from .codec import CONTENT_KEY
from .criteria import CriteriaQuery, Operator, Predicate
from .errors import NotFoundError, StoreClosedError
from .gateway import QueryRow, StoredDocument
from .settings import StoreSettings, settings as default_settings

KEY_FIELD = "_id"
EXPIRES_AT_FIELD = "_expires_at"
TTL_INDEX_NAME = "aggregate_expiration_ttl"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Query translation
# ---------------------------------------------------------------------------


def _predicate_filters(query: CriteriaQuery, predicate: Predicate) -> List[Dict[str, Any]]:
    path = predicate.field_path
    if predicate.operator is Operator.IS_MISSING:
        return [{path: {"$exists": False}}]
    value = query.value_of(predicate)
    if value is None:
        # {"$eq": None} would also match documents without the field
        return [{path: {"$type": "null"}}, {path: {"$not": {"$type": "array"}}}]
    if isinstance(value, (list, tuple, dict)):
        # whole-value comparison; plain $eq also matches nested array elements
        return [{"$expr": {"$eq": [f"${path}", {"$literal": value}]}}]
    # plain $eq on an array field matches any element
    return [{path: {"$eq": value}}, {path: {"$not": {"$type": "array"}}}]


def to_mongo_filter(query: CriteriaQuery) -> Dict[str, Any]:
    """Translate a compiled criteria query into a MongoDB filter document."""

    clauses: List[Dict[str, Any]] = []
    for predicate in query.predicates:
        clauses.extend(_predicate_filters(query, predicate))
    return {"$and": clauses}


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class MongoStoreGateway:
    def __init__(
        self,
        collection: Collection,
        *,
        client: Optional[MongoClient] = None,
        create_ttl_index: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._collection = collection
        self._client = client
        self._clock = clock
        self.collection_name: str = collection.name

        self._idle = threading.Condition()
        self._in_flight = 0
        self._closed = False

        if create_ttl_index:
            collection.create_index(
                [(EXPIRES_AT_FIELD, ASCENDING)],
                name=TTL_INDEX_NAME,
                expireAfterSeconds=0,
            )

    @classmethod
    def from_settings(cls, store_settings: Optional[StoreSettings] = None) -> "MongoStoreGateway":
        cfg = store_settings or default_settings
        client: MongoClient = MongoClient(cfg.uri, timeoutMS=cfg.timeout_ms)
        try:
            gateway = cls(
                client[cfg.db_name][cfg.collection],
                client=client,
                create_ttl_index=cfg.create_ttl_index,
            )
        except Exception:
            client.close()
            raise
        logger.info(f"Opened aggregate collection {cfg.db_name}.{cfg.collection}")
        return gateway

    @contextmanager
    def _operation(self, name: str, detail: str) -> Iterator[None]:
        with self._idle:
            if self._closed:
                raise StoreClosedError(f"Gateway for {self.collection_name!r} is closed")
            self._in_flight += 1
        try:
            logger.debug(f"{name} {detail} on {self.collection_name}")
            yield
        finally:
            with self._idle:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._idle.notify_all()

    def _live(self) -> Dict[str, Any]:
        return {
            "$or": [
                {EXPIRES_AT_FIELD: {"$exists": False}},
                {EXPIRES_AT_FIELD: {"$gt": self._clock()}},
            ]
        }

    def _remaining_seconds(self, expires_at: Optional[datetime]) -> int:
        if expires_at is None:
            return 0
        remaining = (_as_utc(expires_at) - self._clock()).total_seconds()
        return max(1, math.ceil(remaining))

    # ---------------------------------------------------------
    # CRUD
    # ---------------------------------------------------------
    def get(self, doc_id: str) -> StoredDocument:
        with self._operation("get", doc_id):
            raw = self._collection.find_one({"$and": [{KEY_FIELD: doc_id}, self._live()]})
        if raw is None:
            raise NotFoundError(f"Document {doc_id!r} not found in {self.collection_name!r}")
        raw.pop(KEY_FIELD, None)
        expires_at = raw.pop(EXPIRES_AT_FIELD, None)
        return StoredDocument(
            id=doc_id,
            body=raw,
            expiration=self._remaining_seconds(expires_at),
        )

    def upsert(self, document: StoredDocument) -> None:
        record = dict(document.body)
        record[KEY_FIELD] = document.id
        record.pop(EXPIRES_AT_FIELD, None)
        if document.expiration > 0:
            record[EXPIRES_AT_FIELD] = self._clock() + timedelta(seconds=document.expiration)
        with self._operation("upsert", document.id):
            self._collection.replace_one({KEY_FIELD: document.id}, record, upsert=True)

    def remove(self, doc_id: str) -> None:
        with self._operation("remove", doc_id):
            result = self._collection.delete_one({"$and": [{KEY_FIELD: doc_id}, self._live()]})
        if result.deleted_count == 0:
            raise NotFoundError(f"Document {doc_id!r} not found in {self.collection_name!r}")

    def exists(self, doc_id: str) -> bool:
        with self._operation("exists", doc_id):
            count = self._collection.count_documents(
                {"$and": [{KEY_FIELD: doc_id}, self._live()]}, limit=1
            )
        return count > 0

    def query(self, query: CriteriaQuery) -> List[QueryRow]:
        mongo_filter = to_mongo_filter(query)
        mongo_filter["$and"].append(self._live())
        with self._operation("query", query.statement):
            cursor = self._collection.find(mongo_filter, projection={CONTENT_KEY: True})
            return [
                QueryRow(key=str(raw[KEY_FIELD]), content=raw.get(CONTENT_KEY))
                for raw in cursor
            ]

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------
    def close(self, timeout: Optional[float] = None) -> None:
        """Wait up to ``timeout`` seconds for running operations, then close the client."""

        with self._idle:
            if self._closed:
                return
            self._closed = True
            drained = self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)
        if not drained:
            logger.warning(
                f"Closing {self.collection_name!r} with operations still running after {timeout}s"
            )
        if self._client is not None:
            self._client.close()
        logger.info(f"Closed aggregate collection {self.collection_name}")
