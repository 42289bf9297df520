"""
Polling Waiter

Bounded, interval-driven wait for a task result.

The wait races a periodic tick against a one-shot deadline, both taken
from the event loop clock:
- ticks fire at start + k * interval, for every tick strictly before the
  deadline; ticks missed while a check was running are skipped
- each check is bounded by the time left before the deadline; a check
  cut off by the deadline ends the wait and is not counted as an error
- reaching the deadline returns False; it is not an error

Errors raised by an individual check are absorbed (the wait keeps polling)
and recorded in WaitStats so outages stay visible.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from celery_producer.exceptions import CeleryProducerError

logger = logging.getLogger(__name__)


# A single completion check: True once the result exists
CompletionCheck = Callable[[], Awaitable[bool]]

# Absorbs float error in k * interval near the deadline
_TICK_TOLERANCE = 1e-9


@dataclass
class WaitStats:
    """Statistics for waits performed by a client."""
    waits: int = 0
    completed: int = 0
    timed_out: int = 0
    checks: int = 0
    errors: int = 0
    last_error: BaseException | None = None
    last_error_at: datetime | None = None

    def record_check(self) -> None:
        self.checks += 1

    def record_error(self, error: BaseException) -> None:
        """Record an error absorbed during a wait."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.utcnow()

    def record_outcome(self, completed: bool) -> None:
        self.waits += 1
        if completed:
            self.completed += 1
        else:
            self.timed_out += 1


class PollingWaiter:
    """
    Repeats a completion check on a fixed interval until it succeeds or
    the overall timeout elapses.
    """

    def __init__(
        self,
        interval: float,
        timeout: float,
        stats: WaitStats | None = None,
    ):
        """
        Initialize the waiter.

        Args:
            interval: Seconds between checks
            timeout: Overall deadline in seconds (must exceed interval)
            stats: Shared statistics sink (a new one if None)
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if timeout <= interval:
            raise ValueError("timeout must be longer than interval")

        self._interval = interval
        self._timeout = timeout
        self.stats = stats if stats is not None else WaitStats()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def timeout(self) -> float:
        return self._timeout

    async def wait(self, check: CompletionCheck, label: str = "") -> bool:
        """
        Poll ``check`` until it returns True or the deadline passes.

        Args:
            check: Coroutine function performing one completion check
            label: Name used in log messages (usually the task id)

        Returns:
            True if completion was observed, False on deadline
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline = start + self._timeout
        tick = 1
        errors = 0

        # Tick k runs only when k * interval falls strictly before the timeout
        while tick * self._interval < self._timeout - _TICK_TOLERANCE:
            await asyncio.sleep(max(0.0, start + tick * self._interval - loop.time()))

            budget = deadline - loop.time()
            if budget <= 0:
                break

            self.stats.record_check()
            try:
                completed = await asyncio.wait_for(check(), timeout=budget)
            except asyncio.TimeoutError:
                logger.debug(f"Completion check for {label} cut off by the deadline")
                break
            except CeleryProducerError as e:
                errors += 1
                self.stats.record_error(e)
                logger.debug(f"Completion check failed for {label}, still waiting: {e!r}")
                completed = False

            if completed:
                self.stats.record_outcome(True)
                logger.debug(f"Task {label} completed after {loop.time() - start:.3f}s")
                return True

            # Skip ticks missed while the check was running
            tick = max(tick + 1, int((loop.time() - start) / self._interval) + 1)

        remaining = deadline - loop.time()
        if remaining > 0:
            await asyncio.sleep(remaining)

        self.stats.record_outcome(False)
        if errors:
            logger.warning(
                f"Wait for {label} reached its {self._timeout:g}s deadline "
                f"after {errors} failed check(s); last error: {self.stats.last_error!r}"
            )
        else:
            logger.debug(f"Wait for {label} reached its {self._timeout:g}s deadline")
        return False
