"""Test fixtures for kafkatrace."""

from collections.abc import Iterator
from dataclasses import dataclass, field

import anyio
import pytest
from aiokafka import TopicPartition
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Tracer

import kafkatrace.client as client_module
from kafkatrace import InstrumentationConfig, KafkaInstrumentor, SpanFactory


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def span_exporter():
    """Create an in-memory span exporter for testing."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter):
    """Create a tracer provider with in-memory exporter."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture
def tracer(tracer_provider: TracerProvider) -> Tracer:
    return tracer_provider.get_tracer("kafkatrace.tests")


@pytest.fixture
def span_factory(tracer: Tracer) -> SpanFactory:
    return SpanFactory(tracer, InstrumentationConfig())


@pytest.fixture
def instrumentor() -> Iterator[KafkaInstrumentor]:
    """Instrumentor that is uninstrumented again after the test."""
    instrumentor = KafkaInstrumentor()
    yield instrumentor
    if instrumentor.is_instrumented_by_opentelemetry:
        instrumentor.uninstrument()


@dataclass
class FakeRecord:
    """Stand-in for aiokafka's ConsumerRecord."""

    offset: int
    value: bytes | None
    headers: list[tuple[str, bytes]] = field(default_factory=list)
    key: bytes | None = None
    timestamp: int = 0


class FakeProducer:
    def __init__(self, broker: "FakeBroker", **kwargs: object) -> None:
        self._broker = broker
        self.options = kwargs
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send_and_wait(
        self,
        topic: str,
        value: bytes | None = None,
        key: bytes | None = None,
        partition: int | None = None,
        timestamp_ms: int | None = None,
        headers: list[tuple[str, bytes]] | None = None,
    ) -> tuple[str, int]:
        if self._broker.fail_with is not None:
            raise self._broker.fail_with
        self._broker.sent.append((topic, value, list(headers or [])))
        return topic, len(self._broker.sent) - 1


class FakeConsumer:
    def __init__(self, broker: "FakeBroker", *topics: str, **kwargs: object) -> None:
        self._broker = broker
        self.topics = topics
        self.options = kwargs
        self.stopped = False

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        self.stopped = True

    async def getmany(
        self, timeout_ms: int = 0, max_records: int | None = None
    ) -> dict[TopicPartition, list[FakeRecord]]:
        ready = {
            tp: records
            for tp, records in self._broker.pending.items()
            if tp.topic in self.topics
        }
        for tp in ready:
            del self._broker.pending[tp]
        if not ready:
            await anyio.sleep(0.001)
        return ready

    async def commit(self, offsets: dict[TopicPartition, int]) -> None:
        self._broker.committed.append(offsets)


class FakeBroker:
    """In-memory replacement for the aiokafka producer and consumer."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, bytes | None, list[tuple[str, bytes]]]] = []
        self.pending: dict[TopicPartition, list[FakeRecord]] = {}
        self.committed: list[dict[TopicPartition, int]] = []
        self.fail_with: Exception | None = None
        self.consumers: list[FakeConsumer] = []

    def make_producer(self, **kwargs: object) -> FakeProducer:
        return FakeProducer(self, **kwargs)

    def make_consumer(self, *topics: str, **kwargs: object) -> FakeConsumer:
        consumer = FakeConsumer(self, *topics, **kwargs)
        self.consumers.append(consumer)
        return consumer

    def deliver(
        self,
        topic: str,
        *records: tuple[bytes | None, list[tuple[str, bytes]]],
        partition: int = 0,
    ) -> None:
        """Queue (value, headers) records for the next poll."""
        tp = TopicPartition(topic, partition)
        queued = self.pending.setdefault(tp, [])
        for value, headers in records:
            queued.append(FakeRecord(offset=len(queued), value=value, headers=headers))

    def redeliver_sent(self, partition: int = 0) -> None:
        """Queue everything produced so far for consumption."""
        for topic, value, headers in self.sent:
            self.deliver(topic, (value, headers), partition=partition)


@pytest.fixture
def broker(monkeypatch: pytest.MonkeyPatch) -> FakeBroker:
    broker = FakeBroker()
    monkeypatch.setattr(client_module, "AIOKafkaProducer", broker.make_producer)
    monkeypatch.setattr(client_module, "AIOKafkaConsumer", broker.make_consumer)
    return broker
