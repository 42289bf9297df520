"""
Tests for the polling waiter.

Covers:
- Completion on the first tick that observes it
- Deadline expiry within a bounded margin
- Errors absorbed and recorded
- Unexpected exceptions still propagate
- Checks that hang are cut off at the deadline without counting as errors
- No tick is checked on the deadline, whatever the interval
"""

import asyncio
import logging

import pytest

from celery_producer.exceptions import BrokerConnectionError, ResultDecodeError
from celery_producer.waiter import PollingWaiter, WaitStats


class TestWaiterConstruction:

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PollingWaiter(interval=0, timeout=1)

    def test_timeout_must_exceed_interval(self):
        with pytest.raises(ValueError):
            PollingWaiter(interval=0.05, timeout=0.01)

    def test_shared_stats(self):
        stats = WaitStats()
        assert PollingWaiter(interval=0.05, timeout=0.2, stats=stats).stats is stats


class TestWait:
    """Tests for PollingWaiter.wait."""

    @pytest.mark.asyncio
    async def test_completes_on_first_tick(self):
        waiter = PollingWaiter(interval=0.05, timeout=0.2)
        loop = asyncio.get_running_loop()

        async def check():
            return True

        start = loop.time()
        assert await waiter.wait(check) is True
        elapsed = loop.time() - start
        assert 0.04 <= elapsed < 0.15
        assert waiter.stats.checks == 1
        assert waiter.stats.completed == 1

    @pytest.mark.asyncio
    async def test_deadline(self):
        waiter = PollingWaiter(interval=0.05, timeout=0.2)
        loop = asyncio.get_running_loop()
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            return False

        start = loop.time()
        assert await waiter.wait(check) is False
        elapsed = loop.time() - start

        assert 0.19 <= elapsed < 0.35
        # Ticks at 50, 100 and 150ms; the 200ms tick falls on the deadline and is skipped
        assert 2 <= calls <= 3
        assert waiter.stats.timed_out == 1
        assert waiter.stats.errors == 0

    @pytest.mark.asyncio
    async def test_completes_after_a_few_ticks(self):
        waiter = PollingWaiter(interval=0.02, timeout=1.0)
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            return calls == 3

        assert await waiter.wait(check) is True
        assert calls == 3

    @pytest.mark.asyncio
    async def test_errors_are_absorbed(self):
        waiter = PollingWaiter(interval=0.02, timeout=1.0)
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise BrokerConnectionError("connection refused")
            return True

        assert await waiter.wait(check, label="task-1") is True
        assert waiter.stats.errors == 2
        assert isinstance(waiter.stats.last_error, BrokerConnectionError)
        assert waiter.stats.last_error_at is not None

    @pytest.mark.asyncio
    async def test_persistent_errors_end_at_deadline(self):
        waiter = PollingWaiter(interval=0.02, timeout=0.1)

        async def check():
            raise ResultDecodeError("garbage")

        assert await waiter.wait(check) is False
        assert waiter.stats.errors >= 1
        assert waiter.stats.timed_out == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self):
        waiter = PollingWaiter(interval=0.02, timeout=0.5)

        async def check():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await waiter.wait(check)

    @pytest.mark.asyncio
    async def test_hanging_check_is_bounded_by_deadline(self):
        waiter = PollingWaiter(interval=0.05, timeout=0.2)
        loop = asyncio.get_running_loop()

        async def check():
            await asyncio.sleep(10)
            return True

        start = loop.time()
        assert await waiter.wait(check) is False
        assert loop.time() - start < 0.4
        # The deadline cut the check off; no backend failure happened
        assert waiter.stats.errors == 0
        assert waiter.stats.checks == 1
        assert waiter.stats.timed_out == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval,timeout,expected_calls", [
        (0.03, 0.1, 3),
        (0.07, 0.21, 2),
        (0.1, 0.3, 2),
    ])
    async def test_non_round_interval_never_checks_on_deadline(self, interval, timeout, expected_calls):
        waiter = PollingWaiter(interval=interval, timeout=timeout)
        loop = asyncio.get_running_loop()
        calls = 0

        async def check():
            nonlocal calls
            calls += 1
            return False

        start = loop.time()
        assert await waiter.wait(check) is False
        elapsed = loop.time() - start

        assert 1 <= calls <= expected_calls
        assert timeout - 0.01 <= elapsed < timeout + 0.15
        assert waiter.stats.errors == 0
        assert waiter.stats.last_error is None
        assert waiter.stats.timed_out == 1

    @pytest.mark.asyncio
    async def test_deadline_without_errors_logs_no_warning(self, caplog):
        waiter = PollingWaiter(interval=0.05, timeout=0.2)

        async def check():
            return False

        with caplog.at_level(logging.DEBUG, logger="celery_producer.waiter"):
            assert await waiter.wait(check, label="task-1") is False

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
