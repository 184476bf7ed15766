"""
Async Utilities
===============

Event envelope, event bus and periodic maintenance loop shared by the
engines.

Usage:
    from Colony.core.utils.async_utils import EventBus, ColonyEvent, PeriodicTask

    bus = EventBus()
    bus.subscribe("learning_update", my_handler)
    bus.emit(ColonyEvent(type="learning_update", data={"agent_id": "dev-1"}))

    # Maintenance loop (cost monitoring, cache eviction, knowledge decay)
    ticker = PeriodicTask("cost-monitor", 60, optimizer.run_maintenance)
    ticker.start()
    ...
    await ticker.stop()
"""

import asyncio
import logging
import time as _time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event system: lightweight envelope + per-coordinator bus
# ---------------------------------------------------------------------------

COLONY_EVENT_TYPES = frozenset({
    "learning_update",
    "agent_experience",
    "transfer_request",
    "cost_alert",
    "validation_complete",
    "task_complete",
})


@dataclass
class ColonyEvent:
    """Lightweight event envelope used by all engine broadcasting."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=_time.time)
    source: Optional[str] = None

    def __post_init__(self):
        if self.type not in COLONY_EVENT_TYPES:
            _logger.debug("ColonyEvent created with unknown type: %s", self.type)


class EventBus:
    """
    Event bus for engine / coordinator communication.

    One bus is created per coordinator and handed to the engines that need
    it; there is no process-wide instance.

    Usage::

        bus = EventBus()
        bus.subscribe("cost_alert", on_alert)
        bus.emit(ColonyEvent(type="cost_alert", data=alert.to_dict()))
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._emitted = 0

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a listener for an event type."""
        self._listeners.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        """Remove a listener for an event type."""
        listeners = self._listeners.get(event_type, [])
        try:
            listeners.remove(callback)
        except ValueError:
            pass

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def emit(self, event: ColonyEvent) -> None:
        """Emit an event to all subscribed listeners (suppresses exceptions)."""
        self._emitted += 1
        for cb in list(self._listeners.get(event.type, [])):
            try:
                cb(event)
            except Exception as exc:
                _logger.debug("Event listener error for %s: %s", event.type, exc)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'events_emitted': self._emitted,
            'listeners': {k: len(v) for k, v in self._listeners.items() if v},
        }


# ---------------------------------------------------------------------------
# Periodic maintenance
# ---------------------------------------------------------------------------

SleepFn = Callable[[float], Awaitable[Any]]


class PeriodicTask:
    """
    Run ``tick`` every ``interval`` seconds on the running event loop.

    ``tick`` may be a plain function or a coroutine function. Errors raised by
    a tick are logged and the loop keeps going. ``sleep`` is injectable so
    tests can drive the loop without real waits.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Any],
        sleep: Optional[SleepFn] = None,
    ):
        if interval <= 0:
            raise ValueError(f"PeriodicTask '{name}' needs a positive interval, got {interval}")
        self.name = name
        self.interval = interval
        self._tick = tick
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        _logger.info(f"Started periodic task '{self.name}' (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        _logger.info(f"Stopped periodic task '{self.name}' after {self.ticks} ticks")

    async def run_once(self) -> Any:
        """Run a single tick now, logging rather than raising failures."""
        try:
            result = self._tick()
            if asyncio.iscoroutine(result):
                result = await result
            return result
        except Exception as e:
            self.errors += 1
            _logger.error(f"Periodic task '{self.name}' failed: {e}")
            return None
        finally:
            self.ticks += 1

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            await self.run_once()


__all__ = [
    'COLONY_EVENT_TYPES',
    'ColonyEvent',
    'EventBus',
    'PeriodicTask',
]
