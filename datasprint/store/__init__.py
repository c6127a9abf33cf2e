"""
Document store backends.

    from datasprint.store import get_document_store

    store = get_document_store()          # backend chosen by DATASPRINT_STORE
    store.subscribe("users", print)       # snapshot now and after every write
"""

from typing import Optional

from ..config import StoreSettings
from ..exceptions import ConfigurationError
from .base import DocumentStore, new_document_id
from .memory import InMemoryDocumentStore


def get_document_store(settings: Optional[StoreSettings] = None, session=None) -> DocumentStore:
    """
    Build the configured document store backend.

    Args:
        settings: Store settings, read from the environment when omitted
        session: Optional boto3 session for the dynamodb backend

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    settings = settings or StoreSettings.from_env()
    if settings.backend == "memory":
        return InMemoryDocumentStore()
    if settings.backend == "dynamodb":
        from .dynamodb import DynamoDBDocumentStore
        return DynamoDBDocumentStore(
            settings.table_name,
            region=settings.region,
            session=session,
            read_consistent=settings.read_consistent,
        )
    raise ConfigurationError(f"Unknown DATASPRINT_STORE backend {settings.backend!r} (use 'memory' or 'dynamodb')")


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "get_document_store",
    "new_document_id",
]
