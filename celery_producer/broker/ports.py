"""
Broker Port Interface

Abstract base class for the store operations the client needs:
publishing an envelope onto a queue and reading a task result.

These ports follow the hexagonal architecture pattern:
- The client facade depends only on this interface
- Adapters (Redis, in-memory) implement it
- The adapter is chosen once, at client construction

Thread-safety: implementations must be safe for concurrent async usage.
"""

from abc import ABC, abstractmethod


class Broker(ABC):
    """
    Abstract interface for the Celery broker/result store.

    A missing result is reported as None from ``get``, never as an
    exception; exceptions mean the store itself could not be used.
    """

    @abstractmethod
    async def publish(self, queue: str, envelope: bytes) -> None:
        """
        Push an envelope onto the head of the queue list.

        Args:
            queue: Queue name (list key)
            envelope: Serialized envelope

        Raises:
            BrokerError: If the store rejects or cannot receive the write
        """
        ...

    @abstractmethod
    async def get(self, task_id: str) -> bytes | None:
        """
        Look up the stored result for a task.

        Args:
            task_id: The task id

        Returns:
            Raw stored value, or None if no result exists yet

        Raises:
            BrokerError: On transport or backend failure
        """
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """
        Check the store is reachable.

        Returns:
            True if the store answered
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release pooled connections."""
        ...

    async def __aenter__(self) -> "Broker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
