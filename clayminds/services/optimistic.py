# clayminds/services/optimistic.py
from __future__ import annotations

from copy import deepcopy
from typing import Any


class OptimisticUpdate:
    """
    Change one attribute of a state object now, settle it later.

    The new value is visible immediately; the caller must finish with
    commit() (remote write confirmed) or rollback() (restore snapshot).
    Only the first of the two has an effect.
    """

    def __init__(self, target: Any, attribute: str, new_value: Any):
        self._target = target
        self._attribute = attribute
        self._snapshot = deepcopy(getattr(target, attribute))
        self._settled = False
        setattr(target, attribute, new_value)

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def snapshot(self) -> Any:
        return self._snapshot

    def commit(self) -> None:
        self._settled = True

    def rollback(self) -> None:
        if self._settled:
            return
        setattr(self._target, self._attribute, self._snapshot)
        self._settled = True

    def settle(self, ok: bool) -> bool:
        if ok:
            self.commit()
        else:
            self.rollback()
        return ok
