"""
Celery Message Envelope Model

Wire models for the Celery task protocol as delivered over the Redis
("kombu") transport:

- TaskMessage: the task body (name, id, positional args)
- Envelope: the transport wrapper pushed onto the queue list. The task body
  is JSON-serialized, base64-encoded and carried in ``body``.
- ResultMessage: the document a worker writes to the result backend

Field names here are consumed by Celery workers we do not control.
They must not be renamed.

Routing is flat: ``routing_key`` and ``exchange`` are both the queue name,
and the queue name is the Redis list key the envelope is pushed onto.
"""

import base64
import binascii
import json
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from celery_producer.exceptions import EncodingError, ResultDecodeError


CONTENT_TYPE = "application/json"
CONTENT_ENCODING = "utf-8"
BODY_ENCODING = "base64"
DELIVERY_MODE_PERSISTENT = 2


def _new_id() -> str:
    return str(uuid4())


def _dumps(data: Any) -> str:
    """Compact JSON, rejecting anything JSON cannot represent (NaN included)."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


class TaskMessage(BaseModel):
    """
    The logical unit of work.

    Only positional arguments are supported; ``kwargs`` is always empty,
    ``eta`` always unset and ``retries`` always 0 at submission.
    """
    model_config = ConfigDict(frozen=True)

    task: str = Field(..., min_length=1, description="Registered task name on the worker side")
    id: str = Field(default_factory=_new_id, description="Task id, also the result lookup key")
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)
    eta: str | None = None
    retries: int = 0


class DeliveryInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: int = 0
    routing_key: str
    exchange: str


class Properties(BaseModel):
    model_config = ConfigDict(frozen=True)

    body_encoding: str = BODY_ENCODING
    correlation_id: str = Field(default_factory=_new_id)
    reply_to: str = Field(default_factory=_new_id)
    delivery_info: DeliveryInfo
    delivery_mode: int = DELIVERY_MODE_PERSISTENT
    delivery_tag: str = Field(default_factory=_new_id)


class Envelope(BaseModel):
    """
    Transport envelope pushed onto the queue list.

    Field order follows what Celery producers emit; ``headers`` is left out
    of the serialized form when unset.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    body: str
    headers: dict[str, Any] | None = None
    content_type: str = Field(default=CONTENT_TYPE, alias="content-type")
    properties: Properties
    content_encoding: str = Field(default=CONTENT_ENCODING, alias="content-encoding")

    def to_json(self) -> bytes:
        """Serialize to the wire form."""
        return _dumps(self.model_dump(by_alias=True, exclude_none=True)).encode("utf-8")

    def task_message(self) -> TaskMessage:
        """Decode the base64 body back into its TaskMessage."""
        try:
            raw = base64.b64decode(self.body, validate=True)
            return TaskMessage.model_validate_json(raw)
        except (binascii.Error, ValidationError) as e:
            raise ValueError(f"Envelope body is not a valid task message: {e}") from e


class ResultMessage(BaseModel):
    """
    A task result as written by a worker.

    ``status``, ``result`` and ``traceback`` are carried through untouched;
    this client only cares that a result exists. Extra fields written by
    newer workers (``date_done``, ``name``...) are ignored.
    """
    model_config = ConfigDict(extra="ignore")

    task_id: str | None = None
    status: str | None = None
    traceback: Any = None
    result: Any = None
    children: list[Any] = Field(default_factory=list)

    @field_validator("children", mode="before")
    @classmethod
    def _null_children(cls, v: Any) -> Any:
        return [] if v is None else v


def encode_task(
    task_name: str,
    args: list[Any] | tuple[Any, ...] | None,
    queue: str,
) -> tuple[bytes, str]:
    """
    Build the wire envelope for a task.

    Args:
        task_name: Task name as registered on the workers
        args: Positional arguments (None is sent as an empty list)
        queue: Target queue, used as both routing key and exchange

    Returns:
        (envelope bytes, generated task id)

    Raises:
        EncodingError: If the task name is empty, the name or queue is not a
            string, or an argument is not JSON-serializable
    """
    if not task_name:
        raise EncodingError(task_name, "task name cannot be empty")

    try:
        message = TaskMessage(task=task_name, args=list(args) if args else [])
    except (TypeError, ValidationError) as e:
        raise EncodingError(str(task_name), str(e)) from e

    try:
        # model_dump keeps args as the caller's objects, so json decides
        # what is representable.
        body_json = _dumps(message.model_dump())
    except (TypeError, ValueError) as e:
        raise EncodingError(task_name, str(e)) from e

    try:
        envelope = Envelope(
            body=base64.b64encode(body_json.encode("utf-8")).decode("ascii"),
            properties=Properties(
                delivery_info=DeliveryInfo(routing_key=queue, exchange=queue),
            ),
        )
    except ValidationError as e:
        raise EncodingError(task_name, f"invalid queue {queue!r}") from e
    return envelope.to_json(), message.id


def decode_envelope(raw: bytes | str) -> Envelope:
    """Parse an envelope as found on the queue list."""
    return Envelope.model_validate_json(raw)


def decode_result(raw: bytes | str) -> ResultMessage:
    """
    Parse a stored result document.

    Raises:
        ResultDecodeError: If the payload is not a JSON object matching
            the result layout
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ResultDecodeError(f"Result is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ResultDecodeError(
            f"Result must be a JSON object, got {type(data).__name__}"
        )

    try:
        return ResultMessage.model_validate(data)
    except ValidationError as e:
        raise ResultDecodeError(f"Result has an invalid layout: {e}") from e
