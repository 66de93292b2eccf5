"""Monotonic countdown for a topic's speaking time."""

from __future__ import annotations

import time
from typing import Callable, Optional


class Countdown:
    """start/pause/reset countdown. Never touches scores."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        if seconds < 0:
            raise ValueError("Countdown length must not be negative.")
        self.seconds = float(seconds)
        self._clock = clock
        self._elapsed = 0.0
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()

    def pause(self) -> None:
        if self._started_at is not None:
            self._elapsed += self._clock() - self._started_at
            self._started_at = None

    def reset(self) -> None:
        self._elapsed = 0.0
        self._started_at = None

    def elapsed(self) -> float:
        if self._started_at is None:
            return self._elapsed
        return self._elapsed + (self._clock() - self._started_at)

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed())

    def expired(self) -> bool:
        return self.elapsed() >= self.seconds

    def overtime(self) -> float:
        # seconds spoken past the limit, feeds an "overtime" penalty
        return max(0.0, self.elapsed() - self.seconds)
