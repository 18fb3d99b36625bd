from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from switchboard.models.kv_entry import KVEntry

logger = logging.getLogger(__name__)


class KVStoreError(Exception):
    """Raised when the backing table cannot be read or written."""


class KVStore:
    """Key-value access over the ``kv_store`` table.

    Every ``set``/``delete`` commits on its own. Nothing spans several keys, so
    a reader may observe one write of a multi-key sequence without the other.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, key: str) -> Any | None:
        try:
            entry = self._db.get(KVEntry, key)
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise KVStoreError(f"failed to read {key!r}") from exc
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any) -> None:
        try:
            entry = self._db.get(KVEntry, key)
            if entry is None:
                self._db.add(KVEntry(key=key, value=value))
            else:
                # Reassign; in-place JSON mutation is not tracked
                entry.value = value
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise KVStoreError(f"failed to write {key!r}") from exc

    def delete(self, key: str) -> None:
        try:
            entry = self._db.get(KVEntry, key)
            if entry is None:
                return
            self._db.delete(entry)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise KVStoreError(f"failed to delete {key!r}") from exc
        logger.debug("kv_store: deleted %s", key)
