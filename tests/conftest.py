"""Shared fixtures for the Celery producer tests."""

import json

import pytest
import pytest_asyncio

from celery_producer.broker.memory import InMemoryBroker
from celery_producer.client import CeleryClient
from celery_producer.config import ClientOptions


@pytest.fixture
def options() -> ClientOptions:
    """Fast options: 200ms deadline, 50ms polling."""
    return ClientOptions.from_mapping({
        "url": "redis://127.0.0.1:6379/0",
        "queue": "realtime",
        "timeout": "200ms",
        "getinterval": "50ms",
    })


@pytest_asyncio.fixture
async def memory_broker():
    broker = InMemoryBroker()
    yield broker
    await broker.close()


@pytest_asyncio.fixture
async def client(memory_broker, options) -> CeleryClient:
    return CeleryClient(memory_broker, options)


@pytest.fixture
def result_json():
    """Build a result document the way a Celery worker writes it."""
    def _build(task_id: str, status: str = "SUCCESS", result=None) -> bytes:
        return json.dumps({
            "status": status,
            "result": result,
            "traceback": None,
            "children": [],
            "date_done": "2024-01-01T00:00:00.000000",
            "task_id": task_id,
        }).encode("utf-8")
    return _build
