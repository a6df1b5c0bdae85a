"""Creation of producer and consumer spans."""

import logging
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry.context import Context
from opentelemetry.trace import Link, Span, SpanKind, Tracer

from kafkatrace import attributes
from kafkatrace.config import Hook, InstrumentationConfig
from kafkatrace.propagation import inject_context
from kafkatrace.types import KafkaMessage, Message

logger = logging.getLogger(__name__)


def _topic_attributes(topic: str) -> dict[str, str]:
    return {
        attributes.MESSAGING_SYSTEM: attributes.KAFKA,
        attributes.MESSAGING_DESTINATION: topic,
        attributes.MESSAGING_DESTINATION_KIND: attributes.DESTINATION_KIND_TOPIC,
    }


class SpanFactory:
    """Starts correctly attributed Kafka spans.

    Spans are returned started but not ended; ending them is the caller's
    responsibility (see kafkatrace.finalizer).

    Example:
        factory = SpanFactory(tracer, InstrumentationConfig())
        span = factory.start_producer_span("orders", message)
    """

    def __init__(
        self,
        tracer: Tracer,
        config: InstrumentationConfig | None = None,
        module_version: str | None = None,
    ) -> None:
        self._tracer = tracer
        self.config = config or InstrumentationConfig()
        self.module_version = module_version

    def start_producer_span(
        self,
        topic: str,
        message: Message,
        context: Context | None = None,
    ) -> Span:
        """Start a PRODUCER span and inject it into the message headers.

        Args:
            topic: Destination topic, also used as span name.
            message: Outgoing message; its headers are created if missing.
            context: Parent context. Uses the current context if not set.
        """
        parent = context if context is not None else otel_context.get_current()
        span = self._tracer.start_span(
            topic,
            context=parent,
            kind=SpanKind.PRODUCER,
            attributes=_topic_attributes(topic),
        )
        self._add_module_version(span)

        inject_context(span, message, parent)

        self._run_hook("producer_hook", self.config.producer_hook, span, topic, message)
        return span

    def start_consumer_span(
        self,
        topic: str,
        message: KafkaMessage | None,
        operation: str,
        context: Context | None = None,
        link: Link | None = None,
    ) -> Span:
        """Start a CONSUMER span.

        Args:
            topic: Source topic, also used as span name.
            message: The consumed message, or None for a batch receive span.
            operation: "process" or "receive".
            context: Parent context. Uses the current context if not set.
            link: Optional link to the producer span of the message.
        """
        span = self._tracer.start_span(
            topic,
            context=context,
            kind=SpanKind.CONSUMER,
            attributes={
                **_topic_attributes(topic),
                attributes.MESSAGING_OPERATION: operation,
            },
            links=[link] if link is not None else [],
        )
        self._add_module_version(span)

        # The batch receive span represents no single message.
        if message is not None:
            self._run_hook(
                "consumer_hook", self.config.consumer_hook, span, topic, message
            )
        return span

    def _add_module_version(self, span: Span) -> None:
        name = self.config.module_version_attribute_name
        if name is None or self.module_version is None:
            return
        span.set_attribute(name, self.module_version)

    @staticmethod
    def _run_hook(
        name: str,
        hook: Hook | None,
        span: Span,
        topic: str,
        message: Any,
    ) -> None:
        if hook is None:
            return
        try:
            hook(span, topic, message)
        except Exception:
            logger.exception("kafkatrace instrumentation: %s error", name)
