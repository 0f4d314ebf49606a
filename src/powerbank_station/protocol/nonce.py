"""Strictly increasing millisecond nonce for ASCII unlock requests."""

from __future__ import annotations

import time
from typing import Callable


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class MonotonicNonce:
    """Issue millisecond timestamps that never repeat or go backwards.

    If the clock has not advanced past the last issued value (two calls in
    the same millisecond, or a clock step backwards), the next value is
    ``last_issued + 1``. Construct one per process and hand it to whatever
    encodes unlock frames.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or _wall_clock_ms
        self.last_issued = 0

    def next(self) -> int:
        value = self._clock()
        if value <= self.last_issued:
            value = self.last_issued + 1
        self.last_issued = value
        return value
