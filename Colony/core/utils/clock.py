"""
Clock
=====

Injected time source. Engines never call ``time.time()`` directly so that
TTLs, day boundaries and retention windows can be driven from tests.

Usage:
    clock = ManualClock(start=1_700_000_000)
    cache = ResultCache(ttl_seconds=3600, clock=clock)
    clock.advance(3601)   # entry is now expired
"""

import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Abstract time source returning epoch seconds."""

    @abstractmethod
    def now(self) -> float:
        ...

    def today(self) -> date:
        """Calendar day (UTC) of ``now()``."""
        return day_of(self.now())


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> float:
        return time.time()


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: float) -> None:
        self._now = float(timestamp)


def day_of(timestamp: float) -> date:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


__all__ = [
    'Clock',
    'SystemClock',
    'ManualClock',
    'day_of',
]
