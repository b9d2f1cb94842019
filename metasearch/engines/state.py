"""Per-engine health: circuit breaker plus burst cooldown."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Healthy:
    pass


@dataclass(frozen=True)
class TimedOut:
    available_at: float


class EngineState:
    """Health state owned by a single engine instance.

    Two independent timers gate availability:

    - the breaker, which opens (``TimedOut``) on a transport timeout and
      closes once the clock reaches ``available_at``;
    - the cooldown, re-armed after every request that completed without
      timing out.

    Timers are reconciled lazily in ``is_available()``. The clock is
    injectable so tests can drive time explicitly.
    """

    def __init__(
        self,
        *,
        penalty: float = 3600.0,
        cooldown: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.penalty = penalty
        self.cooldown = cooldown
        self._clock = clock
        self.health: Healthy | TimedOut = Healthy()
        self.cooldown_until: float | None = None

    def is_available(self) -> bool:
        now = self._clock()
        if isinstance(self.health, TimedOut) and now >= self.health.available_at:
            self.health = Healthy()
        if self.cooldown_until is not None and now >= self.cooldown_until:
            self.cooldown_until = None
        return isinstance(self.health, Healthy) and self.cooldown_until is None

    def record_timeout(self) -> float:
        """Open the breaker. Returns the time it closes again."""
        available_at = self._clock() + self.penalty
        self.health = TimedOut(available_at=available_at)
        return available_at

    def record_completed(self) -> None:
        """Re-arm the cooldown after a request that did not time out."""
        self.cooldown_until = self._clock() + self.cooldown
