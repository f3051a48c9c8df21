"""SQLAlchemy-backed persisted store."""

import copy
import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from marginalia.db.models import StoreCollection
from marginalia.store.base import ChangeListener, KeyValueStore

logger = logging.getLogger(__name__)


class SqlStore(KeyValueStore):
    """
    Key-value store persisting each collection as one JSON row.

    Writes made through this instance notify local subscribers immediately.
    Writes made by other processes are picked up by `refresh()`, which compares
    row versions with the versions this instance last saw.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        super().__init__()
        self._session_factory = session_factory
        self._seen_versions: dict[str, int] = {}

    def read(self, collection: str, default: Any = None) -> Any:
        with self._session_factory() as session:
            record = session.get(StoreCollection, collection)
            if record is None:
                return copy.deepcopy(default)
            return copy.deepcopy(record.payload)

    def _write(self, collection: str, value: Any) -> None:
        payload = copy.deepcopy(value)
        with self._session_factory() as session, session.begin():
            record = session.get(StoreCollection, collection)
            if record is None:
                record = StoreCollection(name=collection, payload=payload, version=1)
                session.add(record)
            else:
                record.payload = payload
                record.version += 1
            version = record.version
        self._seen_versions[collection] = version

    def subscribe(self, collection: str, listener: ChangeListener) -> Callable[[], None]:
        if collection not in self._seen_versions:
            self._seen_versions[collection] = self._current_version(collection)
        return super().subscribe(collection, listener)

    def refresh(self) -> list[str]:
        """
        Notify subscribers of collections changed by another process.

        Returns:
            Names of the collections whose version moved since last seen.
        """
        with self._session_factory() as session:
            rows = session.execute(
                select(StoreCollection.name, StoreCollection.version)
            ).all()

        changed = []
        for name, version in rows:
            previous = self._seen_versions.get(name)
            self._seen_versions[name] = version
            if previous != version:
                changed.append(name)

        for name in changed:
            logger.debug("Collection %s changed externally", name)
            self.notify(name)
        return changed

    def _current_version(self, collection: str) -> int:
        with self._session_factory() as session:
            version = session.execute(
                select(StoreCollection.version).where(StoreCollection.name == collection)
            ).scalar_one_or_none()
        return version or 0
