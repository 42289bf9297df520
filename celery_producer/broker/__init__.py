"""
Broker Module

Store access for the Celery producer client.

Components:
- Broker: Abstract interface (publish / get)
- RedisBroker: Redis implementation (direct or Sentinel)
- InMemoryBroker: Development/testing implementation
- ConnectionProvider: Builds the pooled Redis client for a topology
"""

from celery_producer.broker.ports import Broker
from celery_producer.broker.memory import InMemoryBroker
from celery_producer.broker.redis_broker import RedisBroker
from celery_producer.broker.connection import (
    ConnectionProvider,
    DirectConnectionProvider,
    SentinelConnectionProvider,
    create_connection_provider,
)
from celery_producer.broker.factory import create_broker

__all__ = [
    # Port interface
    "Broker",
    # Implementations
    "InMemoryBroker",
    "RedisBroker",
    # Connections
    "ConnectionProvider",
    "DirectConnectionProvider",
    "SentinelConnectionProvider",
    "create_connection_provider",
    # Factory
    "create_broker",
]
