"""Tracing wrappers for producer and consumer operations.

Each function takes the original callable and returns a replacement with
the same signature. Spans are started before the original is invoked and
ended when its result settles, including when the caller is cancelled.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.context import Context

from kafkatrace.attributes import OPERATION_PROCESS, OPERATION_RECEIVE
from kafkatrace.finalizer import end_spans_on_completion
from kafkatrace.propagation import activated, extract_context, extract_link
from kafkatrace.spans import SpanFactory
from kafkatrace.types import (
    EachBatchPayload,
    EachMessagePayload,
    ProducerBatch,
    ProducerRecord,
)

AsyncCallable = Callable[..., Awaitable[Any]]


def wrap_send(original: AsyncCallable, spans: SpanFactory) -> AsyncCallable:
    """Trace Producer.send: one PRODUCER span per message."""

    @wraps(original)
    async def send(record: ProducerRecord, *args: Any, **kwargs: Any) -> Any:
        ctx = otel_context.get_current()
        started = [
            spans.start_producer_span(record.topic, message, ctx)
            for message in record.messages
        ]
        return await end_spans_on_completion(
            started, lambda: original(record, *args, **kwargs)
        )

    return send


def wrap_send_batch(original: AsyncCallable, spans: SpanFactory) -> AsyncCallable:
    """Trace Producer.send_batch: one PRODUCER span per message of every topic."""

    @wraps(original)
    async def send_batch(batch: ProducerBatch, *args: Any, **kwargs: Any) -> Any:
        ctx = otel_context.get_current()
        started = [
            spans.start_producer_span(topic_messages.topic, message, ctx)
            for topic_messages in batch.topic_messages or []
            for message in topic_messages.messages
        ]
        return await end_spans_on_completion(
            started, lambda: original(batch, *args, **kwargs)
        )

    return send_batch


def wrap_each_message(original: AsyncCallable, spans: SpanFactory) -> AsyncCallable:
    """Trace an each_message handler.

    The process span is a child of the context propagated in the message
    headers and stays active while the handler runs.
    """

    @wraps(original)
    async def each_message(
        payload: EachMessagePayload, *args: Any, **kwargs: Any
    ) -> Any:
        propagated = extract_context(payload.message.headers)
        span = spans.start_consumer_span(
            payload.topic,
            payload.message,
            OPERATION_PROCESS,
            propagated,
        )
        with activated(trace.set_span_in_context(span, propagated)):
            return await end_spans_on_completion(
                [span], lambda: original(payload, *args, **kwargs)
            )

    return each_message


def wrap_each_batch(original: AsyncCallable, spans: SpanFactory) -> AsyncCallable:
    """Trace an each_batch handler.

    A receive span covers the whole batch and is active while the handler
    runs. Every message gets a root process span, a sibling of the receive
    span, linked to the producer span found in its own headers.
    """

    @wraps(original)
    async def each_batch(payload: EachBatchPayload, *args: Any, **kwargs: Any) -> Any:
        topic = payload.batch.topic
        receiving = spans.start_consumer_span(
            topic, None, OPERATION_RECEIVE, Context()
        )
        active = trace.set_span_in_context(receiving, otel_context.get_current())
        with activated(active):
            started = [receiving]
            for message in payload.batch.messages:
                started.append(
                    spans.start_consumer_span(
                        topic,
                        message,
                        OPERATION_PROCESS,
                        Context(),
                        extract_link(message.headers),
                    )
                )
            return await end_spans_on_completion(
                started, lambda: original(payload, *args, **kwargs)
            )

    return each_batch
