"""
Tests for Redis connection providers.

No Redis server is needed: redis.asyncio clients connect lazily, and the
Sentinel class is replaced by a mock where discovery would happen.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.asyncio import Redis

from celery_producer.broker.connection import (
    DirectConnectionProvider,
    SentinelConnectionProvider,
    create_connection_provider,
)
from celery_producer.config import ClientOptions
from celery_producer.exceptions import BrokerConnectionError


class TestCreateConnectionProvider:
    """Topology selection from the options shape."""

    def test_direct_by_default(self):
        provider = create_connection_provider(ClientOptions.from_mapping({}))
        assert isinstance(provider, DirectConnectionProvider)

    def test_sentinel_from_addresses(self):
        options = ClientOptions.from_mapping({
            "url": "redis://:pw@127.0.0.1:6379/3",
            "sentinelAddrs": ["host1:26379", "host2:26379"],
            "mastername": "default-master",
        })
        provider = create_connection_provider(options)
        assert isinstance(provider, SentinelConnectionProvider)
        assert "host1:26379,host2:26379" in provider.describe()
        assert "master=default-master" in provider.describe()
        assert "db=3" in provider.describe()

    def test_sentinel_from_url(self):
        options = ClientOptions.from_mapping({
            "url": "sentinel://host1:26379,host2:26379/1",
            "mastername": "mymaster",
        })
        provider = create_connection_provider(options)
        assert isinstance(provider, SentinelConnectionProvider)
        assert "db=1" in provider.describe()


class TestDirectConnectionProvider:
    """Tests for DirectConnectionProvider."""

    @pytest.mark.asyncio
    async def test_connect_builds_pooled_client(self):
        provider = DirectConnectionProvider("redis://127.0.0.1:6379/2", health_check_interval=15)
        client = provider.connect()
        try:
            assert isinstance(client, Redis)
            kwargs = client.connection_pool.connection_kwargs
            assert kwargs["host"] == "127.0.0.1"
            assert kwargs["port"] == 6379
            assert kwargs["db"] == 2
            assert kwargs["health_check_interval"] == 15
        finally:
            await client.aclose()

    def test_unparseable_url(self):
        provider = DirectConnectionProvider("http://example.com")
        with pytest.raises(BrokerConnectionError):
            provider.connect()

    def test_describe(self):
        assert DirectConnectionProvider("redis://10.0.0.1:6380/4").describe() == "10.0.0.1:6380/4"


class TestSentinelConnectionProvider:
    """Tests for SentinelConnectionProvider."""

    def test_requires_addresses(self):
        with pytest.raises(BrokerConnectionError):
            SentinelConnectionProvider([], "default-master")

    def test_requires_master_name(self):
        with pytest.raises(BrokerConnectionError):
            SentinelConnectionProvider([("host1", 26379)], "")

    def test_connect_discovers_primary_with_role_check(self):
        with patch("celery_producer.broker.connection.Sentinel") as sentinel_cls:
            sentinel = sentinel_cls.return_value
            provider = SentinelConnectionProvider(
                [("host1", 26379), ("host2", 26379)],
                "default-master",
                password="pw",
                db=1,
                socket_timeout=0.05,
            )
            client = provider.connect()

        args, kwargs = sentinel_cls.call_args
        assert args[0] == [("host1", 26379), ("host2", 26379)]
        assert kwargs["socket_timeout"] == 0.05
        assert kwargs["socket_connect_timeout"] == 0.05
        assert kwargs["sentinel_kwargs"] == {"socket_timeout": 0.05, "socket_connect_timeout": 0.05}

        master_args, master_kwargs = sentinel.master_for.call_args
        assert master_args == ("default-master",)
        assert master_kwargs["check_connection"] is True
        assert master_kwargs["password"] == "pw"
        assert master_kwargs["db"] == 1
        assert master_kwargs["retry"] is not None
        assert client is sentinel.master_for.return_value

    @pytest.mark.asyncio
    async def test_close_releases_sentinel_clients(self):
        with patch("celery_producer.broker.connection.Sentinel") as sentinel_cls:
            sentinel_client = MagicMock()
            sentinel_client.aclose = AsyncMock()
            sentinel_cls.return_value.sentinels = [sentinel_client]

            provider = SentinelConnectionProvider([("host1", 26379)], "default-master")
            provider.connect()
            await provider.close()

        sentinel_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_without_connect(self):
        provider = SentinelConnectionProvider([("host1", 26379)], "default-master")
        await provider.close()
