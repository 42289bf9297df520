"""
Client Configuration

Options accepted by the Celery producer client, with defaults, duration
parsing and fail-closed validation. Validation happens before any
connection is attempted.

Options:
- url: Redis endpoint (redis://, rediss://, unix://) or a Sentinel URL
  (sentinel:// or redis+sentinel:// with comma-separated host:port pairs)
- sentinel_addrs: Sentinel addresses (aliases: sentinelAddrs, addrs)
- mastername: Sentinel primary group name
- queue: Target queue (Redis list key, routing key and exchange)
- timeout: Overall deadline for wait_for_task_completed
- getinterval: Interval between result lookups while waiting
- health_check_interval: Seconds an idle pooled connection may sit before
  it is PINGed on reuse
- result_key_prefix: Prefix prepended to the task id to form the result key

Durations accept Go-style strings ("10s", "100ms", "1m30s"), numbers
(seconds) or timedelta. A zero duration falls back to the default.

Environment Variables (options_from_env):
- CELERY_REDIS_URL, CELERY_QUEUE, CELERY_TIMEOUT, CELERY_GET_INTERVAL,
  CELERY_SENTINEL_ADDRS (comma separated), CELERY_MASTER_NAME
"""

from __future__ import annotations

import os
import re
from datetime import timedelta
from typing import Any, Mapping
from urllib.parse import unquote

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from celery_producer.exceptions import ConfigurationError


DEFAULT_URL = "redis://127.0.0.1:6379"
DEFAULT_QUEUE = "celery"
DEFAULT_MASTER_NAME = "default-master"
DEFAULT_TIMEOUT = timedelta(seconds=30)
DEFAULT_GET_INTERVAL = timedelta(milliseconds=50)
DEFAULT_SENTINEL_PORT = 26379

SENTINEL_SCHEMES = ("sentinel", "redis+sentinel")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: Any) -> timedelta:
    """
    Parse a duration option.

    Strings use Go's duration syntax ("300ms", "1.5h", "2h45m"); numbers
    are seconds.

    Raises:
        ValueError: If the value is negative or not a recognised duration
    """
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text == "0":
            seconds = 0.0
        else:
            pos = 0
            seconds = 0.0
            while pos < len(text):
                match = _DURATION_PART.match(text, pos)
                if match is None:
                    raise ValueError(f"invalid duration: {value!r}")
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0:
                raise ValueError(f"invalid duration: {value!r}")
    else:
        raise ValueError(f"invalid duration: {value!r}")

    if seconds < 0:
        raise ValueError(f"duration cannot be negative: {value!r}")
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Render a timedelta the way it is written in options ("50ms", "30s")."""
    ms = value.total_seconds() * 1000
    if ms < 1000:
        return f"{ms:g}ms"
    return f"{value.total_seconds():g}s"


def is_sentinel_url(url: str) -> bool:
    """Check whether a URL uses a Sentinel scheme."""
    scheme, sep, _ = url.partition("://")
    return bool(sep) and scheme.lower() in SENTINEL_SCHEMES


def _split_host_port(address: str) -> tuple[str, int]:
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
    else:
        host, _, port = address.rpartition(":") if ":" in address else (address, "", "")
    if not host:
        raise ValueError(f"missing host in sentinel address {address!r}")
    return host, int(port) if port else DEFAULT_SENTINEL_PORT


def parse_sentinel_url(url: str) -> tuple[list[tuple[str, int]], str | None, int]:
    """
    Parse a Sentinel URL into (addresses, password, db).

    Accepted forms:
        sentinel://[:password@]host1:26379,host2:26379[/db]
        redis+sentinel://host1:26379,host2:26379/0
        sentinel://:pw@host1:26379/0;sentinel://host2:26379/0

    Raises:
        ValueError: If the URL is not a Sentinel URL or carries no address
    """
    addresses: list[tuple[str, int]] = []
    password: str | None = None
    db = 0

    for part in url.split(";"):
        part = part.strip()
        if not part:
            continue
        if not is_sentinel_url(part):
            raise ValueError(f"not a sentinel URL: {part!r}")
        _, _, rest = part.partition("://")
        credentials, _, hosts = rest.rpartition("@")
        netloc, _, path = hosts.partition("/")
        path = path.split("?", 1)[0]

        secret = credentials.partition(":")[2]
        if secret and password is None:
            password = unquote(secret)

        for address in netloc.split(","):
            address = address.strip()
            if address:
                addresses.append(_split_host_port(address))

        if path:
            db = int(path)

    if not addresses:
        raise ValueError(f"sentinel URL has no address: {url!r}")
    return addresses, password, db


class ClientOptions(BaseModel):
    """
    Validated client configuration.

    Build from a caller-supplied mapping with ``from_mapping`` so unknown
    keys and invalid values surface as ConfigurationError.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    url: str = DEFAULT_URL
    sentinel_addrs: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("sentinel_addrs", "sentinelAddrs", "addrs"),
    )
    mastername: str = DEFAULT_MASTER_NAME
    queue: str = DEFAULT_QUEUE
    timeout: timedelta = DEFAULT_TIMEOUT
    getinterval: timedelta = DEFAULT_GET_INTERVAL
    health_check_interval: float = Field(default=30.0, ge=0)
    result_key_prefix: str = ""

    @field_validator("timeout", "getinterval", mode="before")
    @classmethod
    def _parse_durations(cls, v: Any, info: ValidationInfo) -> timedelta:
        duration = parse_duration(v)
        if not duration:
            return DEFAULT_TIMEOUT if info.field_name == "timeout" else DEFAULT_GET_INTERVAL
        return duration

    @model_validator(mode="after")
    def _validate(self) -> "ClientOptions":
        if self.timeout <= self.getinterval:
            raise ValueError("timeout duration cannot be shorter than check interval")
        if not self.queue:
            raise ValueError("target queue cannot be empty")
        if not self.url:
            raise ValueError("endpoint URL cannot be empty")
        if self.uses_sentinel and not self.mastername:
            raise ValueError("mastername cannot be empty when sentinel addresses are set")
        if self.sentinel_addrs:
            for address in self.sentinel_addrs:
                _split_host_port(address)
        elif is_sentinel_url(self.url):
            parse_sentinel_url(self.url)
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None = None) -> "ClientOptions":
        """
        Build options from a plain mapping, applying defaults to omitted keys.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as e:
            raise ConfigurationError(f"invalid options; reason: {e}") from e

    @property
    def uses_sentinel(self) -> bool:
        """True when the failover (Sentinel) topology is configured."""
        return bool(self.sentinel_addrs) or is_sentinel_url(self.url)

    def sentinel_addresses(self) -> list[tuple[str, int]]:
        """Sentinel (host, port) pairs, explicit or derived from the URL."""
        if self.sentinel_addrs:
            return [_split_host_port(a) for a in self.sentinel_addrs]
        if is_sentinel_url(self.url):
            return parse_sentinel_url(self.url)[0]
        return []

    def safe_url(self) -> str:
        """URL with any password masked, for logging.

        The password runs to the last "@" of each ";"-separated address, so
        passwords containing "/", ":" or "@" are masked whole.
        """
        return re.sub(r"(://[^:/@;]*:)[^;]*@", r"\1***@", self.url)

    def describe(self) -> dict[str, Any]:
        """Loggable view of the effective configuration."""
        return {
            "url": self.safe_url(),
            "sentinel_addrs": [f"{h}:{p}" for h, p in self.sentinel_addresses()] or None,
            "mastername": self.mastername if self.uses_sentinel else None,
            "queue": self.queue,
            "timeout": format_duration(self.timeout),
            "getinterval": format_duration(self.getinterval),
        }


def options_from_env(**overrides: Any) -> ClientOptions:
    """
    Build options from environment variables.

    Explicit keyword overrides win over the environment.

    Raises:
        ConfigurationError: If the resulting options are invalid
    """
    data: dict[str, Any] = {}
    env_map = {
        "CELERY_REDIS_URL": "url",
        "CELERY_QUEUE": "queue",
        "CELERY_TIMEOUT": "timeout",
        "CELERY_GET_INTERVAL": "getinterval",
        "CELERY_MASTER_NAME": "mastername",
    }
    for env_key, option in env_map.items():
        value = os.getenv(env_key)
        if value is not None:
            data[option] = value

    addrs = os.getenv("CELERY_SENTINEL_ADDRS")
    if addrs:
        data["sentinel_addrs"] = [a.strip() for a in addrs.split(",") if a.strip()]

    data.update(overrides)
    return ClientOptions.from_mapping(data)
