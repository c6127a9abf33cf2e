"""In-process document store, used for local runs and tests."""

import copy
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from ..exceptions import NotFoundError, StoreError
from .base import DocumentStore, Snapshot


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe dict-backed store.

    Documents keep insertion order, which is the iteration order snapshots and
    `list` report. Reads and writes copy documents so callers never share
    mutable state with the store.
    """

    def __init__(self):
        super().__init__()
        self._collections: Dict[str, "OrderedDict[str, Dict[str, Any]]"] = {}
        self._lock = threading.RLock()

    def _docs(self, collection: str) -> "OrderedDict[str, Dict[str, Any]]":
        return self._collections.setdefault(collection, OrderedDict())

    def _get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def _list(self, collection: str) -> Snapshot:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._docs(collection).values()]

    def _put(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        with self._lock:
            self._docs(collection)[doc_id] = copy.deepcopy(record)

    def _update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        with self._lock:
            doc = self._docs(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            doc.update(copy.deepcopy(changes))

    def _increment(self, collection: str, doc_id: str, field_name: str, amount: int) -> int:
        with self._lock:
            doc = self._docs(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            current = doc.get(field_name) or 0
            if not isinstance(current, (int, float)) or isinstance(current, bool):
                raise StoreError(f"Field {field_name} of {collection}/{doc_id} is not numeric")
            doc[field_name] = current + amount
            return doc[field_name]

    def _delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._docs(collection).pop(doc_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()
