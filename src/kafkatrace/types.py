"""Message, record and handler types used by the Kafka client."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

Headers = dict[str, str | bytes]


@dataclass
class Message:
    """An outgoing message. Headers are created on demand by the tracer."""

    value: bytes | None = None
    key: bytes | None = None
    headers: Headers | None = None
    partition: int | None = None
    timestamp_ms: int | None = None


@dataclass
class ProducerRecord:
    topic: str
    messages: list[Message] = field(default_factory=list)


@dataclass
class TopicMessages:
    topic: str
    messages: list[Message] = field(default_factory=list)


@dataclass
class ProducerBatch:
    topic_messages: list[TopicMessages] = field(default_factory=list)


@dataclass
class KafkaMessage:
    """A message as delivered to a consumer handler."""

    value: bytes | None = None
    key: bytes | None = None
    headers: dict[str, bytes] = field(default_factory=dict)
    offset: int = 0
    timestamp: int | None = None


@dataclass
class Batch:
    topic: str
    partition: int
    messages: list[KafkaMessage] = field(default_factory=list)


@dataclass
class EachMessagePayload:
    topic: str
    partition: int
    message: KafkaMessage


@dataclass
class EachBatchPayload:
    batch: Batch


EachMessageHandler = Callable[[EachMessagePayload], Awaitable[None]]
EachBatchHandler = Callable[[EachBatchPayload], Awaitable[None]]


@dataclass
class ConsumerRunConfig:
    """Handlers for Consumer.run. If both are set, each_batch wins."""

    each_message: EachMessageHandler | None = None
    each_batch: EachBatchHandler | None = None
