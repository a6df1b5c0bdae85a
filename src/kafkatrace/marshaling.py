"""Marshaling between kafkatrace messages and aiokafka records."""

from collections.abc import Sequence
from typing import Any

from kafkatrace.types import Headers, KafkaMessage


def to_kafka_headers(headers: Headers | None) -> list[tuple[str, bytes]]:
    """Convert a header mapping to aiokafka header tuples."""
    if not headers:
        return []
    return [
        (key, value if isinstance(value, bytes) else str(value).encode())
        for key, value in headers.items()
    ]


def from_kafka_headers(
    headers: Sequence[tuple[str, bytes]] | None,
) -> dict[str, bytes]:
    """Convert aiokafka header tuples to a mapping.

    Values stay binary; decoding happens when trace context is read.
    """
    result: dict[str, bytes] = {}
    for key, value in headers or ():
        result[key] = value
    return result


def to_kafka_message(record: Any) -> KafkaMessage:
    """Convert an aiokafka ConsumerRecord to a KafkaMessage."""
    return KafkaMessage(
        value=record.value,
        key=record.key,
        headers=from_kafka_headers(record.headers),
        offset=record.offset,
        timestamp=record.timestamp,
    )
