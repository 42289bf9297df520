"""
In-Memory Broker Implementation

Async-safe broker kept in process memory.
Suitable for development and testing without a Redis server.

Mirrors the Redis semantics the client relies on:
- publish pushes to the head of a per-queue list
- get returns None until a result has been stored for the task
"""

import asyncio
import logging
from collections import defaultdict

from celery_producer.broker.ports import Broker
from celery_producer.exceptions import BrokerConnectionError

logger = logging.getLogger(__name__)


class InMemoryBroker(Broker):
    """
    In-memory broker.

    Test helpers:
    - set_result: simulate a worker writing a result
    - queue_contents: inspect published envelopes (head first)
    """

    def __init__(self, result_key_prefix: str = ""):
        self._result_key_prefix = result_key_prefix
        self._lists: dict[str, list[bytes]] = defaultdict(list)
        self._values: dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self._closed = False

        # Statistics
        self.published_count = 0
        self.get_count = 0

    def _check_open(self) -> None:
        if self._closed:
            raise BrokerConnectionError("Broker is closed")

    async def publish(self, queue: str, envelope: bytes) -> None:
        async with self._lock:
            self._check_open()
            self._lists[queue].insert(0, bytes(envelope))
            self.published_count += 1
        logger.debug(f"Envelope pushed to in-memory list: {queue}")

    async def get(self, task_id: str) -> bytes | None:
        async with self._lock:
            self._check_open()
            self.get_count += 1
            return self._values.get(f"{self._result_key_prefix}{task_id}")

    async def set_result(self, task_id: str, value: bytes | str) -> None:
        """Store a raw result value as a worker would."""
        if isinstance(value, str):
            value = value.encode("utf-8")
        async with self._lock:
            self._values[f"{self._result_key_prefix}{task_id}"] = value

    async def queue_contents(self, queue: str) -> list[bytes]:
        """Envelopes on a queue, most recently published first."""
        async with self._lock:
            return list(self._lists.get(queue, []))

    async def ping(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        self._closed = True
        logger.info("In-memory broker closed")
