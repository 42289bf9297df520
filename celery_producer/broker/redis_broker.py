"""
Redis Broker Implementation

Publishes Celery envelopes onto Redis lists and reads results by key.

Key schema:
- {queue}                     - List of pending envelopes (LPUSH, workers BRPOP)
- {result_key_prefix}{task_id} - Result document written by the worker

Uses redis.asyncio; the client's connection pool is shared by all
operations and PINGs idle connections before reusing them.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from celery_producer.broker.connection import ConnectionProvider
from celery_producer.broker.ports import Broker
from celery_producer.exceptions import BrokerConnectionError, BrokerError

logger = logging.getLogger(__name__)


class RedisBroker(Broker):
    """
    Redis-backed broker.

    Either wraps an existing client (shared pool) or builds one from a
    ConnectionProvider. Only a client built here is closed by ``close``.
    """

    def __init__(
        self,
        redis: Redis | None = None,
        provider: ConnectionProvider | None = None,
        result_key_prefix: str = "",
    ):
        """
        Initialize Redis broker.

        Args:
            redis: Existing redis.asyncio client to share
            provider: Provider used to build a client when none is given
            result_key_prefix: Prefix for result keys ("" reads the task id
                verbatim, "celery-task-meta-" matches Celery's Redis backend)
        """
        if redis is None and provider is None:
            raise ValueError("RedisBroker needs a redis client or a connection provider")

        self._provider = provider
        self._owns_client = redis is None
        self._redis = redis if redis is not None else provider.connect()
        self._result_key_prefix = result_key_prefix

    @property
    def redis(self) -> Redis:
        return self._redis

    def _result_key(self, task_id: str) -> str:
        return f"{self._result_key_prefix}{task_id}"

    async def publish(self, queue: str, envelope: bytes) -> None:
        try:
            await self._redis.lpush(queue, envelope)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise BrokerConnectionError(f"Cannot publish to queue '{queue}': {e}") from e
        except RedisError as e:
            raise BrokerError(f"Publish to queue '{queue}' failed: {e}") from e
        logger.debug(f"Envelope pushed to Redis list: {queue}")

    async def get(self, task_id: str) -> bytes | None:
        key = self._result_key(task_id)
        try:
            value = await self._redis.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise BrokerConnectionError(f"Cannot read result {key}: {e}") from e
        except RedisError as e:
            raise BrokerError(f"Result lookup {key} failed: {e}") from e

        if value is None:
            return None
        if isinstance(value, str):
            # Client created with decode_responses=True
            return value.encode("utf-8")
        return value

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._owns_client:
            await self._redis.aclose()
        if self._provider is not None:
            await self._provider.close()
        logger.info("Redis broker closed")
