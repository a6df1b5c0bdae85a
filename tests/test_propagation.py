"""Tests for trace context propagation through message headers."""

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import Tracer

from kafkatrace import (
    Message,
    activated,
    buffer_getter,
    extract_context,
    extract_link,
    inject_context,
)

TRACEPARENT = "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-01"
TRACE_ID = 0x0AF7651916CD43DD8448EB211C80319C
SPAN_ID = 0xB7AD6B7169203331


class TestBufferTextMapGetter:
    """Tests for reading propagation headers."""

    def test_get_text_value(self) -> None:
        """Text values are returned as they are."""
        assert buffer_getter.get({"traceparent": "abc"}, "traceparent") == ["abc"]

    def test_get_bytes_value(self) -> None:
        """Binary values are decoded to text."""
        carrier = {"traceparent": TRACEPARENT.encode()}
        assert buffer_getter.get(carrier, "traceparent") == [TRACEPARENT]

    def test_get_missing_key(self) -> None:
        """A missing key yields None."""
        assert buffer_getter.get({"other": b"x"}, "traceparent") is None

    def test_get_missing_carrier(self) -> None:
        """A missing carrier yields None."""
        assert buffer_getter.get(None, "traceparent") is None

    def test_keys(self) -> None:
        """Keys are listed in header order."""
        assert buffer_getter.keys({"a": b"1", "b": "2"}) == ["a", "b"]

    def test_keys_missing_carrier(self) -> None:
        """A missing carrier has no keys."""
        assert buffer_getter.keys(None) == []


class TestInjectContext:
    """Tests for trace context injection."""

    def test_creates_headers(self, tracer: Tracer) -> None:
        """Inject creates the header mapping when the message has none."""
        message = Message(value=b"test")
        span = tracer.start_span("orders")

        inject_context(span, message)

        assert message.headers is not None
        assert "traceparent" in message.headers
        span_id = format(span.get_span_context().span_id, "016x")
        assert span_id in message.headers["traceparent"]

    def test_preserves_existing_headers(self, tracer: Tracer) -> None:
        """Existing headers are kept next to the injected ones."""
        message = Message(value=b"test", headers={"key": "value"})

        inject_context(tracer.start_span("orders"), message)

        assert message.headers is not None
        assert message.headers["key"] == "value"
        assert "traceparent" in message.headers


class TestExtractContext:
    """Tests for trace context extraction."""

    def test_extract_from_binary_headers(self) -> None:
        """A binary traceparent yields the remote span context."""
        ctx = extract_context({"traceparent": TRACEPARENT.encode()})

        span_context = trace.get_current_span(ctx).get_span_context()
        assert span_context.is_remote
        assert span_context.trace_id == TRACE_ID
        assert span_context.span_id == SPAN_ID

    def test_extract_empty_headers(self) -> None:
        """Extract from empty headers yields an empty context."""
        ctx = extract_context({})
        assert not trace.get_current_span(ctx).get_span_context().is_valid

    def test_extract_malformed_headers(self) -> None:
        """A malformed traceparent yields an empty context."""
        ctx = extract_context({"traceparent": b"not-a-traceparent"})
        assert not trace.get_current_span(ctx).get_span_context().is_valid

    def test_extract_ignores_current_span(self, tracer: Tracer) -> None:
        """Extraction starts from an empty context, not the current one."""
        with tracer.start_as_current_span("ambient"):
            ctx = extract_context(None)
        assert not trace.get_current_span(ctx).get_span_context().is_valid


class TestExtractLink:
    """Tests for building links from headers."""

    def test_link_to_remote_span(self) -> None:
        """The link points at the propagated span."""
        link = extract_link({"traceparent": TRACEPARENT.encode()})

        assert link is not None
        assert link.context.trace_id == TRACE_ID
        assert link.context.span_id == SPAN_ID

    def test_no_link_without_context(self) -> None:
        """No link is built without trace headers."""
        assert extract_link({}) is None
        assert extract_link(None) is None


class TestActivated:
    """Tests for activating a context."""

    def test_restores_previous_context(self) -> None:
        """The previous context is restored on exit."""
        before = otel_context.get_current()
        ctx = otel_context.set_value("key", "value", Context())

        with activated(ctx):
            assert otel_context.get_value("key") == "value"

        assert otel_context.get_current() == before
