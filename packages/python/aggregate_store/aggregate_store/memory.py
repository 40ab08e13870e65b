"""In-process store gateway, for tests and local development.

Honours the same contract as ``MongoStoreGateway``: upsert replaces, get and
remove raise ``NotFoundError`` for absent ids, expired documents disappear,
and criteria queries tell "stored as null" apart from "never written".
"""

from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .codec import CONTENT_KEY
from .criteria import CriteriaQuery, Operator
from .errors import NotFoundError, StoreClosedError
from .gateway import QueryRow, StoredDocument

_ABSENT = object()


def _lookup(body: Any, path: Tuple[str, ...]) -> Any:
    node = body
    for segment in path:
        if not isinstance(node, Mapping) or segment not in node:
            return _ABSENT
        node = node[segment]
    return node


def _equal(stored: Any, expected: Any) -> bool:
    if isinstance(expected, tuple):
        expected = list(expected)
    if isinstance(stored, bool) != isinstance(expected, bool):
        return False
    return stored == expected


def matches(query: CriteriaQuery, body: Mapping[str, Any]) -> bool:
    """Return True when ``body`` satisfies every predicate of ``query``."""

    for predicate in query.predicates:
        found = _lookup(body, predicate.path)
        if predicate.operator is Operator.IS_MISSING:
            if found is not _ABSENT:
                return False
        elif found is _ABSENT or not _equal(found, query.value_of(predicate)):
            return False
    return True


class InMemoryStoreGateway:
    def __init__(
        self,
        collection_name: str = "aggregates",
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.collection_name = collection_name
        self._clock = clock
        self._lock = threading.Lock()
        # id -> (body, deadline on the clock or None)
        self._documents: Dict[str, Tuple[Dict[str, Any], Optional[float]]] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Gateway for {self.collection_name!r} is closed")

    def _live_entry(self, doc_id: str) -> Optional[Tuple[Dict[str, Any], Optional[float]]]:
        entry = self._documents.get(doc_id)
        if entry is None:
            return None
        deadline = entry[1]
        if deadline is not None and deadline <= self._clock():
            del self._documents[doc_id]
            return None
        return entry

    def get(self, doc_id: str) -> StoredDocument:
        with self._lock:
            self._check_open()
            entry = self._live_entry(doc_id)
            if entry is None:
                raise NotFoundError(f"Document {doc_id!r} not found in {self.collection_name!r}")
            body, deadline = entry
            remaining = 0 if deadline is None else max(1, int(deadline - self._clock()))
            return StoredDocument(id=doc_id, body=copy.deepcopy(body), expiration=remaining)

    def upsert(self, document: StoredDocument) -> None:
        deadline = None
        if document.expiration > 0:
            deadline = self._clock() + document.expiration
        with self._lock:
            self._check_open()
            self._documents[document.id] = (copy.deepcopy(document.body), deadline)

    def remove(self, doc_id: str) -> None:
        with self._lock:
            self._check_open()
            if self._live_entry(doc_id) is None:
                raise NotFoundError(f"Document {doc_id!r} not found in {self.collection_name!r}")
            del self._documents[doc_id]

    def exists(self, doc_id: str) -> bool:
        with self._lock:
            self._check_open()
            return self._live_entry(doc_id) is not None

    def query(self, query: CriteriaQuery) -> List[QueryRow]:
        with self._lock:
            self._check_open()
            rows = []
            for doc_id in list(self._documents):
                entry = self._live_entry(doc_id)
                if entry is None or not matches(query, entry[0]):
                    continue
                rows.append(QueryRow(key=doc_id, content=copy.deepcopy(entry[0].get(CONTENT_KEY))))
            return rows

    def close(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._closed = True
