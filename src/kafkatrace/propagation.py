"""Trace context propagation via Kafka message headers."""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import propagate, trace
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import Getter
from opentelemetry.trace import Link, Span

from kafkatrace.types import Message


class BufferTextMapGetter(Getter[Mapping[str, Any] | None]):
    """Same as the default getter, but header values may be bytes.

    Kafka delivers header values as bytes, the propagators expect text.
    """

    def get(self, carrier: Mapping[str, Any] | None, key: str) -> list[str] | None:
        if not carrier:
            return None
        value = carrier.get(key)
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return [bytes(value).decode("utf-8", errors="replace")]
        return [str(value)]

    def keys(self, carrier: Mapping[str, Any] | None) -> list[str]:
        if not carrier:
            return []
        return list(carrier.keys())


buffer_getter = BufferTextMapGetter()


def inject_context(
    span: Span,
    message: Message,
    context: Context | None = None,
) -> None:
    """Inject a context with `span` active into the message headers.

    Creates the header mapping if the message has none.
    """
    if message.headers is None:
        message.headers = {}
    base = context if context is not None else otel_context.get_current()
    propagate.inject(message.headers, context=trace.set_span_in_context(span, base))


def extract_context(headers: Mapping[str, Any] | None) -> Context:
    """Extract trace context from message headers, starting from an empty context.

    Missing or malformed headers yield an empty context.
    """
    return propagate.extract(headers, context=Context(), getter=buffer_getter)


def extract_link(headers: Mapping[str, Any] | None) -> Link | None:
    """Link to the producer span carried in the headers, if any."""
    span_context = trace.get_current_span(extract_context(headers)).get_span_context()
    if not span_context.is_valid:
        return None
    return Link(span_context)


@contextmanager
def activated(context: Context) -> Iterator[Context]:
    """Make `context` current for the duration of the block."""
    token = otel_context.attach(context)
    try:
        yield context
    finally:
        otel_context.detach(token)
