"""kafkatrace: OpenTelemetry tracing for Kafka producers and consumers."""

from kafkatrace.client import Consumer, Kafka, Producer
from kafkatrace.config import (
    ConsumerConfig,
    InstrumentationConfig,
    KafkaConfig,
    ProducerConfig,
)
from kafkatrace.finalizer import end_spans_on_completion, error_message
from kafkatrace.instrumentation import (
    KafkaInstrumentor,
    is_wrapped,
    rewrap,
    unwrap,
)
from kafkatrace.patches import (
    wrap_each_batch,
    wrap_each_message,
    wrap_send,
    wrap_send_batch,
)
from kafkatrace.propagation import (
    BufferTextMapGetter,
    activated,
    buffer_getter,
    extract_context,
    extract_link,
    inject_context,
)
from kafkatrace.spans import SpanFactory
from kafkatrace.types import (
    Batch,
    ConsumerRunConfig,
    EachBatchPayload,
    EachMessagePayload,
    KafkaMessage,
    Message,
    ProducerBatch,
    ProducerRecord,
    TopicMessages,
)
from kafkatrace.version import __version__

__all__ = [
    # client
    "Kafka",
    "Producer",
    "Consumer",
    "KafkaConfig",
    "ProducerConfig",
    "ConsumerConfig",
    # types
    "Message",
    "ProducerRecord",
    "TopicMessages",
    "ProducerBatch",
    "KafkaMessage",
    "Batch",
    "EachMessagePayload",
    "EachBatchPayload",
    "ConsumerRunConfig",
    # tracing
    "InstrumentationConfig",
    "KafkaInstrumentor",
    "SpanFactory",
    "BufferTextMapGetter",
    "buffer_getter",
    "inject_context",
    "extract_context",
    "extract_link",
    "activated",
    "end_spans_on_completion",
    "error_message",
    "wrap_send",
    "wrap_send_batch",
    "wrap_each_message",
    "wrap_each_batch",
    "is_wrapped",
    "rewrap",
    "unwrap",
    "__version__",
]
