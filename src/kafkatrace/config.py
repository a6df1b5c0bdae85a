"""Configuration for the Kafka client and its instrumentation."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from opentelemetry.trace import Span

Hook = Callable[[Span, str, Any], None]
"""Called with (span, topic, message) right after a span is started."""


@dataclass
class KafkaConfig:
    """Configuration shared by producers and consumers."""

    bootstrap_servers: str = "localhost:9092"
    """Comma-separated list of Kafka broker addresses."""

    client_id: str = "kafkatrace"
    """Client identifier for Kafka connections."""


@dataclass
class ProducerConfig(KafkaConfig):
    """Configuration for Kafka producer."""

    acks: str | int = "all"
    """Acknowledgment level: 0, 1, or 'all'."""

    retry_backoff_ms: int = 100
    """Milliseconds to wait before retrying a failed request."""


@dataclass
class ConsumerConfig(KafkaConfig):
    """Configuration for Kafka consumer."""

    group_id: str = "kafkatrace"
    """Consumer group identifier."""

    auto_offset_reset: str = "earliest"
    """Where to start reading: 'earliest', 'latest', or 'none'."""

    enable_auto_commit: bool = False
    """Disable auto-commit; offsets are committed after each handler call."""

    max_poll_records: int = 10
    """Maximum records to fetch per poll."""

    poll_timeout_ms: int = 1000
    """How long a single poll waits for records."""


@dataclass
class InstrumentationConfig:
    """User-supplied options for span enrichment."""

    producer_hook: Hook | None = None
    """Invoked with (span, topic, message) for every producer span."""

    consumer_hook: Hook | None = None
    """Invoked with (span, topic, message) for every per-message consumer span."""

    module_version_attribute_name: str | None = None
    """If set, the client library version is recorded under this attribute."""
