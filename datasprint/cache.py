"""
Read-through cache for client-side state.

Two values are cached on the client: the signed-in user and the challenge
catalogue. Neither is authoritative. A cached value is served while it is
younger than the staleness window; after that, or after `invalidate()`, the
next read goes back to the store through the loader. Writers invalidate the
affected cache right after every authoritative write.
"""

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger("datasprint.cache")

T = TypeVar("T")

_MISSING = object()


class ReadThroughCache(Generic[T]):
    """
    Cache a single value produced by `loader`.

    Args:
        loader: Callable returning the fresh value (may return None)
        ttl_seconds: Staleness window; 0 disables caching
        path: Optional JSON file the value is persisted to
        serialize / deserialize: Convert the value to and from JSON data
        clock: Monotonic-ish time source, injectable for tests
    """

    def __init__(self, loader: Callable[[], Optional[T]], ttl_seconds: float = 300,
                 path: Optional[str] = None,
                 serialize: Optional[Callable[[T], Any]] = None,
                 deserialize: Optional[Callable[[Any], T]] = None,
                 clock: Callable[[], float] = time.time):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.path = Path(path) if path else None
        self.serialize = serialize or (lambda v: v)
        self.deserialize = deserialize or (lambda v: v)
        self.clock = clock
        self._value: Any = _MISSING
        self._loaded_at = 0.0
        self._lock = threading.RLock()
        self._restore()

    def _restore(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path, "r") as f:
                blob = json.load(f)
            self._value = self.deserialize(blob["value"]) if blob.get("value") is not None else None
            self._loaded_at = float(blob.get("loadedAt", 0))
        except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            self._value = _MISSING

    def _persist(self) -> None:
        if not self.path:
            return
        blob = {
            "loadedAt": self._loaded_at,
            "value": self.serialize(self._value) if self._value is not None else None,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(blob, f)
        os.replace(tmp_path, self.path)

    def is_fresh(self) -> bool:
        with self._lock:
            if self._value is _MISSING:
                return False
            return (self.clock() - self._loaded_at) < self.ttl_seconds

    def get(self) -> Optional[T]:
        """Return the cached value, reloading it when stale or invalidated."""
        with self._lock:
            if self.is_fresh():
                return self._value
            return self.refresh()

    def refresh(self) -> Optional[T]:
        with self._lock:
            value = self.loader()
            self._value = value
            self._loaded_at = self.clock()
            self._persist()
            return value

    def peek(self) -> Optional[T]:
        """Cached value without loading, even when stale; None when empty."""
        with self._lock:
            return None if self._value is _MISSING else self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = _MISSING
            self._loaded_at = 0.0
            if self.path and self.path.exists():
                self.path.unlink()
