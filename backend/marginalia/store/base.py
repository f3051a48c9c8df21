"""
Persisted key-value store contract.

The store holds named collections. Every collection is read and written
wholesale (read-modify-write); there are no partial-field patches at this
layer. Subscribers are notified per collection after each write.
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class KeyValueStore(ABC):
    """Synchronous get/set over named collections with change notifications."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = defaultdict(list)

    @abstractmethod
    def read(self, collection: str, default: Any = None) -> Any:
        """Return a private copy of the whole collection, or `default`."""

    @abstractmethod
    def _write(self, collection: str, value: Any) -> None:
        """Replace the whole collection."""

    def write(self, collection: str, value: Any) -> None:
        self._write(collection, value)
        self.notify(collection)

    def subscribe(self, collection: str, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener for one collection.

        Returns a callable that removes the listener.
        """
        self._listeners[collection].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[collection].remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def notify(self, collection: str) -> None:
        for listener in list(self._listeners.get(collection, ())):
            try:
                listener(collection)
            except Exception:
                # A broken view must not make the write fail
                logger.exception("Store listener failed for collection %s", collection)


class MemoryStore(KeyValueStore):
    """In-process store. Sessions sharing an instance see each other's writes."""

    def __init__(self) -> None:
        super().__init__()
        self._data: dict[str, Any] = {}

    def read(self, collection: str, default: Any = None) -> Any:
        if collection not in self._data:
            return copy.deepcopy(default)
        return copy.deepcopy(self._data[collection])

    def _write(self, collection: str, value: Any) -> None:
        self._data[collection] = copy.deepcopy(value)
