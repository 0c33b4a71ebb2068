"""
Poll Trigger: a cancelable periodic invoker of the reconciliation cycle.

Each tick runs as its own task; stopping the trigger cancels the timer only,
so a cycle that already started finishes its writes and notifications.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class CycleRunner(Protocol):
    async def run_cycle(self, trigger: str = ...) -> Any: ...


class PollTrigger:
    def __init__(
        self,
        engine: CycleRunner,
        interval_s: float | None = None,
        label: str = "timer",
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._engine = engine
        self._interval_s = interval_s if interval_s is not None else settings.poll_interval_s
        if self._interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._label = label
        self._timer: Optional[asyncio.Task[None]] = None
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def start(self) -> None:
        """Poll now, then every interval_s. No-op when already running."""
        if self.running:
            logger.debug("poll_trigger_already_running", label=self._label)
            return
        self._timer = asyncio.get_running_loop().create_task(self._run())
        logger.info("poll_trigger_started", label=self._label, interval_s=self._interval_s)

    def stop(self) -> None:
        """Cancel the timer. In-flight cycles are left to complete."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("poll_trigger_stopped", label=self._label, inflight=len(self._inflight))

    async def wait_idle(self) -> None:
        """Wait for every in-flight cycle to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run(self) -> None:
        while True:
            self._spawn_tick()
            await asyncio.sleep(self._interval_s)

    def _spawn_tick(self) -> None:
        task = asyncio.get_running_loop().create_task(self._tick())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _tick(self) -> None:
        try:
            await self._engine.run_cycle(trigger=self._label)
        except Exception as exc:
            logger.error("poll_tick_failed", label=self._label, error=str(exc), exc_info=True)
