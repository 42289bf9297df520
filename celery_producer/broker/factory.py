"""
Broker Factory

Creates the broker implementation matching the configuration.

Supported backends:
- redis: Redis (direct endpoint or Sentinel failover)
- memory: In-memory broker for development/testing

Environment Variables:
- CELERY_BROKER_BACKEND: Broker backend type (redis, memory)
"""

from __future__ import annotations

import logging
import os

from celery_producer.broker.connection import create_connection_provider
from celery_producer.broker.memory import InMemoryBroker
from celery_producer.broker.ports import Broker
from celery_producer.broker.redis_broker import RedisBroker
from celery_producer.config import ClientOptions

logger = logging.getLogger(__name__)

VALID_BACKENDS = {"redis", "memory"}


def create_broker(options: ClientOptions, backend: str | None = None) -> Broker:
    """
    Create a broker for the given options.

    Args:
        options: Validated client options
        backend: "redis" or "memory". Auto-detects from the
                 CELERY_BROKER_BACKEND env var if not specified.

    Returns:
        Configured Broker instance

    Raises:
        ValueError: If backend is invalid
        BrokerConnectionError: If the endpoint URL cannot be parsed
    """
    if backend is None:
        backend = os.getenv("CELERY_BROKER_BACKEND", "redis")

    backend = backend.lower()

    if backend not in VALID_BACKENDS:
        raise ValueError(
            f"Unknown broker backend: {backend}. "
            f"Valid options: {', '.join(sorted(VALID_BACKENDS))}"
        )

    if backend == "memory":
        logger.info("Creating in-memory broker")
        return InMemoryBroker(result_key_prefix=options.result_key_prefix)

    provider = create_connection_provider(options)
    broker = RedisBroker(provider=provider, result_key_prefix=options.result_key_prefix)
    logger.info(f"Creating Redis broker ({provider.describe()})")
    return broker
