"""
Document store interface shared by every backend.

A store holds plain dict documents grouped in named collections. Besides the
usual get/list/put/update/delete primitives it offers:

- an atomic `increment` for counters written concurrently by many callers
- snapshot subscriptions: every write made through the store delivers the
  collection's full, fresh snapshot to each subscriber of that collection,
  so consumers re-derive their state without polling
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import shortuuid

logger = logging.getLogger("datasprint.store")

Snapshot = List[Dict[str, Any]]
SnapshotCallback = Callable[[Snapshot], None]


def new_document_id() -> str:
    return shortuuid.uuid()


class DocumentStore(ABC):
    """Base class for document store backends."""

    def __init__(self):
        self._subscribers: Dict[str, List[SnapshotCallback]] = {}
        self._subscribers_lock = threading.Lock()

    # ========================================================================
    # Backend primitives
    # ========================================================================

    @abstractmethod
    def _get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _list(self, collection: str) -> Snapshot:
        ...

    @abstractmethod
    def _put(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _increment(self, collection: str, doc_id: str, field_name: str, amount: int) -> int:
        ...

    @abstractmethod
    def _delete(self, collection: str, doc_id: str) -> bool:
        ...

    # ========================================================================
    # Reads
    # ========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document or None when it does not exist."""
        if not doc_id:
            return None
        return self._get(collection, doc_id)

    def list(self, collection: str) -> Snapshot:
        """Return every document of a collection in store iteration order."""
        return self._list(collection)

    # ========================================================================
    # Writes
    # ========================================================================

    def create(self, collection: str, record: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Store a new document, generating an id when none is given.

        Returns:
            The document id.
        """
        doc_id = doc_id or record.get("id") or new_document_id()
        self._put(collection, doc_id, dict(record, id=doc_id))
        self._notify(collection)
        return doc_id

    def put(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        """Create or fully overwrite a document."""
        self._put(collection, doc_id, dict(record, id=doc_id))
        self._notify(collection)

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        """
        Overwrite the given fields of an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        if not changes:
            return
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._update(collection, doc_id, changes)
        self._notify(collection)

    def increment(self, collection: str, doc_id: str, field_name: str, amount: int = 1) -> int:
        """
        Atomically add `amount` to a numeric field (missing fields count as 0).

        Concurrent increments are never lost, unlike a read-modify-write.

        Returns:
            The new value of the field.

        Raises:
            NotFoundError: If the document does not exist.
        """
        value = self._increment(collection, doc_id, field_name, amount)
        self._notify(collection)
        return value

    def delete(self, collection: str, doc_id: str) -> bool:
        """Hard-delete a document. Returns False when it did not exist."""
        deleted = self._delete(collection, doc_id)
        if deleted:
            self._notify(collection)
        return deleted

    # ========================================================================
    # Subscriptions
    # ========================================================================

    def subscribe(self, collection: str, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register a snapshot listener for a collection.

        The callback receives the current snapshot immediately and again after
        every write to the collection.

        Returns:
            A function that removes the listener.
        """
        with self._subscribers_lock:
            self._subscribers.setdefault(collection, []).append(callback)

        callback(self._list(collection))

        def unsubscribe() -> None:
            with self._subscribers_lock:
                listeners = self._subscribers.get(collection, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def subscriber_count(self, collection: str) -> int:
        with self._subscribers_lock:
            return len(self._subscribers.get(collection, []))

    def _notify(self, collection: str) -> None:
        with self._subscribers_lock:
            listeners = list(self._subscribers.get(collection, []))
        if not listeners:
            return
        snapshot = self._list(collection)
        for listener in listeners:
            # A failing listener must not turn a successful write into an error.
            try:
                listener(copy.deepcopy(snapshot))
            except Exception:
                logger.exception(f"Snapshot listener for '{collection}' failed")
