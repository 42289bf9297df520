# Celery Producer - submit Celery tasks over Redis and wait for their results
# Speaks the Celery message protocol so stock Celery workers consume the tasks

__version__ = "0.1.0"

from celery_producer.client import CeleryClient, create_client
from celery_producer.config import ClientOptions, options_from_env
from celery_producer.waiter import PollingWaiter, WaitStats
from celery_producer.protocol import (
    TaskMessage,
    Envelope,
    ResultMessage,
    encode_task,
    decode_envelope,
    decode_result,
)
from celery_producer.broker import (
    Broker,
    InMemoryBroker,
    RedisBroker,
    create_broker,
)
from celery_producer.exceptions import (
    CeleryProducerError,
    ConfigurationError,
    EncodingError,
    ResultDecodeError,
    BrokerError,
    BrokerConnectionError,
)

__all__ = [
    "__version__",
    # Client
    "CeleryClient",
    "create_client",
    "ClientOptions",
    "options_from_env",
    "PollingWaiter",
    "WaitStats",
    # Protocol
    "TaskMessage",
    "Envelope",
    "ResultMessage",
    "encode_task",
    "decode_envelope",
    "decode_result",
    # Broker
    "Broker",
    "InMemoryBroker",
    "RedisBroker",
    "create_broker",
    # Errors
    "CeleryProducerError",
    "ConfigurationError",
    "EncodingError",
    "ResultDecodeError",
    "BrokerError",
    "BrokerConnectionError",
]
