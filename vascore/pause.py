"""Per-feature pause state.

Each feature owns one signed tick value:

* ``+T`` -- paused until ``T``: paused while ``now < T``.
* ``-T`` -- active until ``T``: not paused while ``now < T``, paused again once
  ``now`` passes ``T``.

Fresh entries hold ``-MAX_TICKS`` so they read as active for any realistic time.
Writes overwrite a single slot; last write wins.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Union

import numpy as np

TimeLike = Union[datetime, int]

_TICK = timedelta(microseconds=1)

def to_ticks(t: TimeLike) -> int:
    """Microseconds since ``datetime.min``; integers are taken as ticks already."""
    if isinstance(t, datetime):
        if t.tzinfo is not None:
            t = t.astimezone(timezone.utc).replace(tzinfo=None)
        return (t - datetime.min) // _TICK
    return int(t)

MAX_TICKS = to_ticks(datetime.max)


class PauseKind(Enum):
    PAUSED_UNTIL = "paused_until"
    ACTIVE_UNTIL = "active_until"


@dataclass(frozen=True)
class PauseState:
    kind: PauseKind
    until: int

def ticks_paused(value: int, now: int) -> bool:
    return value > now if value > 0 else -value < now


class PauseLedger:
    def __init__(self, feature_count: int):
        self._ticks = np.full(feature_count, -MAX_TICKS, dtype=np.int64)

    def __len__(self) -> int:
        return len(self._ticks)

    def _check(self, index: int) -> int:
        if not 0 <= index < len(self._ticks):
            raise IndexError(f"Feature index {index} out of range [0, {len(self._ticks)})")
        return index

    def pause(self, index: int, until: TimeLike) -> None:
        self._ticks[self._check(index)] = to_ticks(until)

    def resume(self, index: int, until: TimeLike) -> None:
        self._ticks[self._check(index)] = -to_ticks(until)

    def raw(self, index: int) -> int:
        return int(self._ticks[self._check(index)])

    def state(self, index: int) -> PauseState:
        v = self.raw(index)
        if v > 0:
            return PauseState(PauseKind.PAUSED_UNTIL, v)
        return PauseState(PauseKind.ACTIVE_UNTIL, -v)

    def is_paused(self, index: int, at: TimeLike) -> bool:
        return ticks_paused(self.raw(index), to_ticks(at))
