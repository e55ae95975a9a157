"""Minimal named-signal hub used by registries, rules and cell states."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

__all__ = ["Signals"]

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class Signals:
    """Deliver named notifications to subscribers in subscription order.

    Subscribers are keyed by owner so that an object can disconnect all of
    its callbacks for a signal at once. A failing callback is logged and does
    not prevent delivery to the others.
    """

    def __init__(self, names: Iterable[str]) -> None:
        self._subscribers: dict[str, dict[int, tuple[object, Callback]]] = {
            name: {} for name in names
        }

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._subscribers)

    def _bucket(self, name: str) -> dict[int, tuple[object, Callback]]:
        try:
            return self._subscribers[name]
        except KeyError:
            raise KeyError(f"unknown signal '{name}'") from None

    def connect(self, name: str, owner: object, callback: Callback) -> None:
        self._bucket(name)[id(owner)] = (owner, callback)

    def disconnect(self, name: str, owner: object) -> None:
        self._bucket(name).pop(id(owner), None)

    def is_connected(self, name: str, owner: object) -> bool:
        return id(owner) in self._bucket(name)

    def emit(self, name: str, *args: Any) -> int:
        """Call every subscriber of ``name``; return how many succeeded."""

        delivered = 0
        for owner, callback in list(self._bucket(name).values()):
            try:
                callback(*args)
            except Exception:
                logger.exception(
                    "Signal subscriber failed.",
                    extra={
                        "event": "signals.callback_failed",
                        "signal": name,
                        "owner": type(owner).__name__,
                    },
                )
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        for bucket in self._subscribers.values():
            bucket.clear()
