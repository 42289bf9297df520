# Celery wire protocol: task envelopes and result documents

from celery_producer.protocol.envelope import (
    TaskMessage,
    DeliveryInfo,
    Properties,
    Envelope,
    ResultMessage,
    encode_task,
    decode_envelope,
    decode_result,
)

__all__ = [
    "TaskMessage",
    "DeliveryInfo",
    "Properties",
    "Envelope",
    "ResultMessage",
    "encode_task",
    "decode_envelope",
    "decode_result",
]
