"""Per-key, level-gated reconciliation of candidate property values.

Many rules may write candidate values for the same visual property of a
cell during one evaluation cycle. :class:`KeyedReconciler` keeps the most
severe candidate per key and commits it once per cycle, and it reverts a
property one cycle after the last cycle that applied it.

Each key moves through the following states::

    UNSET --set()--> MATCHED --apply()--> CHANGED --apply() without set()--> UNSET
                        ^                    |
                        +------set()---------+

``prepare()`` opens a cycle. It clears the acknowledgements and, when any
key is ``CHANGED``, drops every transient match so that the new evaluation
starts from a clean slate while the ``changed`` flags remember what must be
watched for reversion. A property that stops matching therefore decays in
two phases: the cycle that applies it marks it ``CHANGED`` and the next
cycle that does not match it reverts it to its default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .backend import CellBackend

__all__ = ["DEFAULT_LEVEL", "KeyPhase", "KeyRecord", "KeyedReconciler"]

logger = logging.getLogger(__name__)

DEFAULT_LEVEL = -1


class KeyPhase(str, Enum):
    UNSET = "unset"
    MATCHED = "matched"
    CHANGED = "changed"


@dataclass
class KeyRecord:
    """Tracked state of one property key."""

    key: str
    default_value: Any
    match_value: Any
    match_level: int = DEFAULT_LEVEL
    matched: bool = False
    changed: bool = False
    acked: bool = False

    @property
    def phase(self) -> KeyPhase:
        if self.matched:
            return KeyPhase.MATCHED
        if self.changed:
            return KeyPhase.CHANGED
        return KeyPhase.UNSET


class KeyedReconciler:
    """Generic reconciler; subclasses bind it to one family of effects.

    Subclasses override :meth:`read_default`, :meth:`apply_effect` and
    :meth:`revert_effect`. Everything else is shared.
    """

    name = "generic"

    def __init__(self, cell: "CellBackend") -> None:
        self.cell = cell
        self._records: dict[str, KeyRecord] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cell={getattr(self.cell, 'cell_id', None)!r}, keys={self.keys!r})"

    def __iter__(self) -> Iterator[KeyRecord]:
        return iter(list(self._records.values()))

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self._records)

    # ------------------------------------------------------------------
    # Domain hooks
    # ------------------------------------------------------------------
    def read_default(self, key: str) -> Any:
        return None

    def apply_effect(self, key: str, value: Any) -> None:
        """Commit ``value`` for ``key`` to the backend."""

    def revert_effect(self, key: str, value: Any) -> None:
        """Restore the backend default for ``key``; ``value`` is the default."""

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def has_key(self, key: str) -> bool:
        return key in self._records

    def ensure_registered(self, key: str) -> KeyRecord:
        """Return the record of ``key``, capturing its default on first use."""

        record = self._records.get(key)
        if record is None:
            default = self.read_default(key)
            record = KeyRecord(key=key, default_value=default, match_value=default)
            self._records[key] = record
        return record

    def register(self, key: str, default: Any) -> KeyRecord:
        """Register ``key`` with an explicit default, resetting its state."""

        record = KeyRecord(key=key, default_value=default, match_value=default)
        self._records[key] = record
        return record

    def record(self, key: str) -> KeyRecord | None:
        return self._records.get(key)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def default_value(self, key: str) -> Any:
        return self.ensure_registered(key).default_value

    def match_value(self, key: str) -> Any:
        return self.ensure_registered(key).match_value

    def target_value(self, key: str) -> Any:
        """Value the backend should show for ``key`` after this cycle."""

        record = self._records.get(key)
        if record is None:
            return None
        if record.matched:
            return record.match_value
        if record.changed:
            return record.default_value
        return None

    def phase(self, key: str) -> KeyPhase:
        record = self._records.get(key)
        return KeyPhase.UNSET if record is None else record.phase

    def is_matched(self, key: str | None = None) -> bool:
        if key is not None:
            record = self._records.get(key)
            return record is not None and record.matched
        return any(record.matched for record in self._records.values())

    def is_changed(self, key: str | None = None) -> bool:
        if key is not None:
            record = self._records.get(key)
            return record is not None and record.changed
        return any(record.changed for record in self._records.values())

    def is_acked(self, key: str) -> bool:
        record = self._records.get(key)
        return record is not None and record.acked

    def level(self, key: str | None = None) -> int:
        if key is not None:
            record = self._records.get(key)
            return DEFAULT_LEVEL if record is None else record.match_level
        return max(
            (record.match_level for record in self._records.values()),
            default=DEFAULT_LEVEL,
        )

    # ------------------------------------------------------------------
    # Cycle operations
    # ------------------------------------------------------------------
    def set(self, key: str, value: Any, level: int) -> bool:
        """Offer ``value`` for ``key`` at severity ``level``.

        The write is accepted when no more severe value was written this
        cycle. Equal levels go to the last writer.
        """

        record = self.ensure_registered(key)
        if record.match_level <= level:
            record.match_level = level
            record.matched = True
            record.match_value = value
            return True
        return False

    def ack(self, key: str) -> None:
        """Mark ``key`` as handled for this cycle without touching the backend."""

        record = self._records.get(key)
        if record is None:
            return
        if record.matched:
            record.matched = False
            record.changed = True
        elif record.changed:
            record.changed = False
        record.acked = True

    def apply(self, key: str | None = None) -> None:
        """Commit matched keys and revert the ones that stopped matching."""

        if key is None:
            for name in list(self._records):
                self.apply(name)
            return
        record = self._records.get(key)
        if record is None or record.acked:
            return
        if record.matched:
            self._run_effect(self.apply_effect, record.key, record.match_value, "apply")
            record.matched = False
            record.changed = True
            record.acked = True
        elif record.changed:
            self.reset(key)
            record.acked = True

    def unset(self, key: str | None = None) -> None:
        """Drop the transient match of ``key`` (all keys when ``None``)."""

        if key is None:
            records = list(self._records.values())
        else:
            record = self._records.get(key)
            records = [] if record is None else [record]
        for record in records:
            record.match_value = record.default_value
            record.matched = False
            record.match_level = DEFAULT_LEVEL

    def reset(self, key: str | None = None) -> None:
        """Revert ``key`` (all keys when ``None``) to its default on the backend."""

        if key is None:
            for name in list(self._records):
                self.reset(name)
            return
        record = self._records.get(key)
        if record is None:
            return
        self.unset(key)
        self._run_effect(self.revert_effect, record.key, record.default_value, "revert")
        record.changed = False

    def prepare(self) -> None:
        """Open a new cycle."""

        changed = False
        for record in self._records.values():
            record.acked = False
            changed = changed or record.changed
        if changed:
            self.unset()

    def _run_effect(self, effect: Any, key: str, value: Any, action: str) -> None:
        try:
            effect(key, value)
        except Exception:
            logger.exception(
                "Failed to %s property '%s'.",
                action,
                key,
                extra={
                    "event": f"reconciler.{action}_failed",
                    "group": self.name,
                    "cell": getattr(self.cell, "cell_id", None),
                    "key": key,
                },
            )
