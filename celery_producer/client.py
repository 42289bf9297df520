"""
Celery Producer Client

Submits tasks to Celery workers through a Redis broker and observes their
completion through the result store.

Per task, the client only distinguishes:
    Submitted -> Pending -> Completed
A task that failed on the worker still writes a result, so it shows up as
completed; the result's status is exposed but never interpreted.

Usage:
    client = create_client({"url": "redis://127.0.0.1:6379/0", "queue": "realtime"})
    task_id = await client.delay("worker.fake_load_task", 4000)
    done = await client.wait_for_task_completed(task_id)
    await client.close()
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from celery_producer.broker.factory import create_broker
from celery_producer.broker.ports import Broker
from celery_producer.config import ClientOptions
from celery_producer.protocol.envelope import ResultMessage, decode_result, encode_task
from celery_producer.waiter import PollingWaiter, WaitStats

logger = logging.getLogger(__name__)


class CeleryClient:
    """
    Facade over the envelope encoder, a broker and the polling waiter.

    Positional task arguments only; keyword arguments are not part of the
    supported protocol subset.
    """

    def __init__(self, broker: Broker, options: ClientOptions):
        """
        Initialize the client.

        Args:
            broker: Broker to publish to and read results from
            options: Validated client options
        """
        self._broker = broker
        self._options = options
        self._waiter = PollingWaiter(
            interval=options.getinterval.total_seconds(),
            timeout=options.timeout.total_seconds(),
        )

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def broker(self) -> Broker:
        return self._broker

    @property
    def queue(self) -> str:
        return self._options.queue

    @property
    def stats(self) -> WaitStats:
        """Wait statistics, including errors absorbed while polling."""
        return self._waiter.stats

    async def delay(self, task_name: str, *args: Any) -> str:
        """
        Submit a task.

        Args:
            task_name: Task name as registered on the workers
            *args: Positional task arguments (JSON-serializable)

        Returns:
            The generated task id

        Raises:
            EncodingError: If the task cannot be encoded (nothing is published)
            BrokerError: If the envelope cannot be pushed
        """
        envelope, task_id = encode_task(task_name, args, self._options.queue)
        await self._broker.publish(self._options.queue, envelope)
        logger.debug(f"Task submitted: {task_name} {task_id} -> {self._options.queue}")
        return task_id

    async def get_result(self, task_id: str) -> ResultMessage | None:
        """
        Fetch and decode a task result.

        Returns:
            The result, or None if the worker has not written one yet

        Raises:
            BrokerError: On store failure
            ResultDecodeError: If the stored value is malformed
        """
        raw = await self._broker.get(task_id)
        if raw is None:
            return None
        return decode_result(raw)

    async def task_completed(self, task_id: str) -> bool:
        """
        Check once whether a result exists for the task.

        Returns:
            True if a result is stored, False if not yet

        Raises:
            BrokerError: On store failure
            ResultDecodeError: If the stored value is malformed
        """
        return await self.get_result(task_id) is not None

    async def wait_for_task_completed(self, task_id: str) -> bool:
        """
        Wait until a result exists or the configured timeout elapses.

        Lookups run every ``getinterval``. Errors from individual lookups
        do not end the wait; they are counted in ``stats``.

        Returns:
            True if the task completed, False if the deadline was reached
        """
        return await self._waiter.wait(lambda: self.task_completed(task_id), label=task_id)

    async def close(self) -> None:
        """Release the broker's connections."""
        await self._broker.close()

    async def __aenter__(self) -> "CeleryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_client(
    options: ClientOptions | Mapping[str, Any] | None = None,
    broker: Broker | None = None,
    backend: str | None = None,
) -> CeleryClient:
    """
    Create a client from options.

    Args:
        options: ClientOptions or a plain option mapping (validated here;
                 defaults applied to omitted keys)
        broker: Existing broker to share (its pool is reused)
        backend: Broker backend when no broker is given ("redis", "memory")

    Returns:
        Configured CeleryClient

    Raises:
        ConfigurationError: If the options are invalid (no connection is
            attempted)
        BrokerConnectionError: If the endpoint cannot be parsed
    """
    if not isinstance(options, ClientOptions):
        options = ClientOptions.from_mapping(options)

    logger.info(f"configuration {options.describe()}")

    if broker is None:
        broker = create_broker(options, backend=backend)

    return CeleryClient(broker, options)
