from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Generic, TypeVar

LOGGER = logging.getLogger(__name__)

S = TypeVar("S")

Listener = Callable[[S, S], None]  # (new, old)


class Store(Generic[S]):
    """
    Observable holder of one frozen dataclass state value.

    Readers get immutable snapshots; only the owning manager calls `set`.
    Listeners run synchronously, in subscription order, after every change.
    """

    def __init__(self, initial: S):
        self._state = initial
        self._listeners: list[Listener[S]] = []
        self._closed = False

    def get(self) -> S:
        return self._state

    def set(self, **changes: Any) -> S:
        old = self._state
        new = dataclasses.replace(old, **changes)
        if new == old:
            return old
        self._state = new
        for listener in list(self._listeners):
            try:
                listener(new, old)
            except Exception:
                # listener faults are logged, never propagated to the owner
                LOGGER.exception("store listener failed")
        return new

    def subscribe(self, listener: Listener[S]) -> Callable[[], None]:
        if self._closed:
            raise RuntimeError("store is closed")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed
