"""
Exceptions for the Celery producer client.

Hierarchy:
- CeleryProducerError
  - ConfigurationError   (invalid client options, raised before any I/O)
  - EncodingError        (task cannot be turned into a wire message)
  - ResultDecodeError    (a stored result value is not a valid result document)
  - BrokerError          (store I/O failure)
    - BrokerConnectionError (endpoint / sentinel / primary discovery failure)

A missing result is not an error: brokers return None for it.
"""


class CeleryProducerError(Exception):
    """Base class for all client errors."""
    def __init__(self, message: str = "Celery producer error."):
        super().__init__(message)


class ConfigurationError(CeleryProducerError):
    """Raised when client options are malformed, unknown or inconsistent."""
    def __init__(self, message: str = "Invalid configuration."):
        super().__init__(message)


class EncodingError(CeleryProducerError):
    """Raised when a task message cannot be serialized."""
    def __init__(self, task_name: str = "", message: str = "Task encoding failed."):
        self.task_name = task_name
        super().__init__(f"Cannot encode task '{task_name}': {message}")


class ResultDecodeError(CeleryProducerError):
    """Raised when a stored result value cannot be parsed."""
    def __init__(self, message: str = "Malformed result payload."):
        super().__init__(message)


class BrokerError(CeleryProducerError):
    """Raised for store I/O failures."""
    def __init__(self, message: str = "Broker error."):
        super().__init__(message)


class BrokerConnectionError(BrokerError):
    """Raised when no usable connection to the store can be established."""
    def __init__(self, message: str = "Broker connection error."):
        super().__init__(message)
