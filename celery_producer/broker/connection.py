"""
Redis Connection Providers

Builds the pooled redis.asyncio client used by RedisBroker.

Two topologies:
- Direct: a single endpoint parsed from the URL
- Sentinel: a set of sentinels is asked for the current primary of a
  named group every time the pool opens a physical connection. The
  discovered node's role is checked before use, so a failover between
  two operations is picked up on the next reconnect.

The topology is chosen once, from the shape of the options.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.connection import parse_url
from redis.asyncio.retry import Retry
from redis.asyncio.sentinel import Sentinel
from redis.backoff import ExponentialBackoff

from celery_producer.config import ClientOptions, is_sentinel_url, parse_sentinel_url
from celery_producer.exceptions import BrokerConnectionError

logger = logging.getLogger(__name__)

_CONNECT_RETRIES = 3


class ConnectionProvider(ABC):
    """Produces a ready-to-use, pooled Redis client."""

    @abstractmethod
    def connect(self) -> Redis:
        """
        Build the client.

        No I/O happens here; connections are opened lazily by the pool.

        Raises:
            BrokerConnectionError: If the endpoint cannot be parsed
        """
        ...

    async def close(self) -> None:
        """Release resources owned by the provider itself."""
        return None

    @abstractmethod
    def describe(self) -> str:
        """Human readable target, safe to log."""
        ...


class DirectConnectionProvider(ConnectionProvider):
    """Connects to the single endpoint named by the URL."""

    def __init__(self, url: str, health_check_interval: float = 30.0):
        self._url = url
        self._health_check_interval = health_check_interval

    def connect(self) -> Redis:
        try:
            return Redis.from_url(
                self._url,
                health_check_interval=self._health_check_interval,
            )
        except ValueError as e:
            raise BrokerConnectionError(f"cannot parse endpoint URL: {e}") from e

    def describe(self) -> str:
        kwargs = parse_url(self._url)
        if "path" in kwargs:
            return f"unix:{kwargs['path']}"
        return f"{kwargs.get('host', 'localhost')}:{kwargs.get('port', 6379)}/{kwargs.get('db', 0)}"


class SentinelConnectionProvider(ConnectionProvider):
    """
    Connects to the primary of a Sentinel-monitored group.

    Connect, read and write timeouts and the retry backoff cap all follow
    the poll interval, so a dead primary is abandoned within one tick.
    """

    def __init__(
        self,
        sentinels: list[tuple[str, int]],
        master_name: str,
        password: str | None = None,
        username: str | None = None,
        db: int = 0,
        socket_timeout: float | None = None,
        health_check_interval: float = 30.0,
    ):
        if not sentinels:
            raise BrokerConnectionError("no sentinel address configured")
        if not master_name:
            raise BrokerConnectionError("sentinel master name cannot be empty")

        self._sentinels = sentinels
        self._master_name = master_name
        self._password = password
        self._username = username
        self._db = db
        self._socket_timeout = socket_timeout
        self._health_check_interval = health_check_interval
        self._sentinel: Sentinel | None = None

    def connect(self) -> Redis:
        timeouts: dict[str, Any] = {}
        if self._socket_timeout:
            timeouts = {
                "socket_timeout": self._socket_timeout,
                "socket_connect_timeout": self._socket_timeout,
            }

        self._sentinel = Sentinel(
            self._sentinels,
            sentinel_kwargs=dict(timeouts),
            **timeouts,
        )
        backoff_cap = self._socket_timeout or 0.5
        return self._sentinel.master_for(
            self._master_name,
            check_connection=True,
            password=self._password,
            username=self._username,
            db=self._db,
            health_check_interval=self._health_check_interval,
            retry=Retry(ExponentialBackoff(cap=backoff_cap, base=backoff_cap / 8), _CONNECT_RETRIES),
        )

    async def close(self) -> None:
        if self._sentinel is None:
            return
        for client in self._sentinel.sentinels:
            await client.aclose()
        self._sentinel = None

    def describe(self) -> str:
        addrs = ",".join(f"{h}:{p}" for h, p in self._sentinels)
        return f"sentinel[{addrs}] master={self._master_name} db={self._db}"


def create_connection_provider(options: ClientOptions) -> ConnectionProvider:
    """
    Pick the provider matching the configured topology.

    Sentinel mode is selected when sentinel addresses are given or the URL
    uses a sentinel scheme. Credentials and database number come from the
    URL in both modes.

    Raises:
        BrokerConnectionError: If the URL cannot be parsed
    """
    if not options.uses_sentinel:
        return DirectConnectionProvider(
            options.url,
            health_check_interval=options.health_check_interval,
        )

    password: str | None = None
    username: str | None = None
    db = 0
    try:
        if is_sentinel_url(options.url):
            _, password, db = parse_sentinel_url(options.url)
        else:
            kwargs = parse_url(options.url)
            password = kwargs.get("password")
            username = kwargs.get("username")
            db = int(kwargs.get("db", 0))
    except ValueError as e:
        raise BrokerConnectionError(f"cannot parse endpoint URL: {e}") from e

    return SentinelConnectionProvider(
        options.sentinel_addresses(),
        options.mastername,
        password=password,
        username=username,
        db=db,
        socket_timeout=options.getinterval.total_seconds(),
        health_check_interval=options.health_check_interval,
    )
