# clayminds/services/local_storage.py
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from clayminds.models.local_state import LocalState

logger = logging.getLogger(__name__)


class LocalStorage:
    """
    Key-value store with the same contract as browser localStorage.
    Values are strings; the *_json helpers encode/decode on top.
    There is no cross-process locking: the last writer wins.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_item(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            row = db.query(LocalState).filter(LocalState.key == key).first()
            return row.value if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            row = db.query(LocalState).filter(LocalState.key == key).first()
            if row:
                row.value = value
            else:
                db.add(LocalState(key=key, value=value))
            db.commit()

    def remove_item(self, key: str) -> None:
        with self._session_factory() as db:
            db.query(LocalState).filter(LocalState.key == key).delete()
            db.commit()

    def clear(self) -> None:
        with self._session_factory() as db:
            db.query(LocalState).delete()
            db.commit()

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring unparseable stored value for key={key}")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))
