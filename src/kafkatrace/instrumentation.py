"""OpenTelemetry instrumentor for the kafkatrace client."""

import logging
from collections.abc import Callable, Collection
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from opentelemetry import trace
from opentelemetry.instrumentation.instrumentor import BaseInstrumentor
from wrapt import BoundFunctionWrapper, FunctionWrapper, wrap_function_wrapper

from kafkatrace.client import Consumer, Kafka, Producer
from kafkatrace.config import InstrumentationConfig
from kafkatrace.patches import (
    wrap_each_batch,
    wrap_each_message,
    wrap_send,
    wrap_send_batch,
)
from kafkatrace.spans import SpanFactory
from kafkatrace.types import ConsumerRunConfig
from kafkatrace.version import __version__

logger = logging.getLogger(__name__)

_instruments = ("aiokafka >= 0.8",)

Patch = Callable[[Callable[..., Any]], Callable[..., Any]]


def is_wrapped(fn: object) -> bool:
    return isinstance(fn, (FunctionWrapper, BoundFunctionWrapper))


def unwrap(obj: object, name: str) -> None:
    """Restore `obj.name` to the function it wrapped, if it is wrapped."""
    fn = getattr(obj, name, None)
    if is_wrapped(fn):
        setattr(obj, name, fn.__wrapped__)


def rewrap(obj: object, name: str, patch: Patch) -> None:
    """Replace `obj.name` with `patch(original)`.

    An existing wrapper is removed first, so patching twice does not
    stack wrappers.
    """
    unwrap(obj, name)

    def wrapper(wrapped: Any, instance: Any, args: Any, kwargs: Any) -> Any:
        # wrapped is already bound to instance
        return patch(wrapped)(*args, **kwargs)

    wrap_function_wrapper(obj, name, wrapper)


def _client_version() -> str | None:
    try:
        return version("aiokafka")
    except PackageNotFoundError:
        return None


class KafkaInstrumentor(BaseInstrumentor):
    """Traces Kafka producers and consumers created after instrument().

    Clients created before uninstrument() keep tracing, and so do the
    handlers of a ConsumerRunConfig already passed to Consumer.run: they
    are wrapped in place and are not restored.

    Example:
        KafkaInstrumentor().instrument(
            tracer_provider=provider,
            producer_hook=lambda span, topic, message: ...,
        )
    """

    _spans: SpanFactory | None = None

    def instrumentation_dependencies(self) -> Collection[str]:
        return _instruments

    def set_config(self, config: InstrumentationConfig) -> None:
        """Replace hooks and attribute options for spans started from now on."""
        if self._spans is not None:
            self._spans.config = config

    def _instrument(self, **kwargs: Any) -> None:
        logger.debug("kafkatrace instrumentation: applying patch")
        tracer = trace.get_tracer(
            "kafkatrace",
            __version__,
            tracer_provider=kwargs.get("tracer_provider"),
        )
        config = InstrumentationConfig(
            producer_hook=kwargs.get("producer_hook"),
            consumer_hook=kwargs.get("consumer_hook"),
            module_version_attribute_name=kwargs.get("module_version_attribute_name"),
        )
        self._spans = SpanFactory(tracer, config, module_version=_client_version())

        rewrap(Kafka, "producer", self._producer_patch)
        rewrap(Kafka, "consumer", self._consumer_patch)

    def _uninstrument(self, **kwargs: Any) -> None:
        logger.debug("kafkatrace instrumentation: un-patching")
        unwrap(Kafka, "producer")
        unwrap(Kafka, "consumer")
        self._spans = None

    def _producer_patch(self, original: Callable[..., Any]) -> Callable[..., Any]:
        spans = self._spans
        if spans is None:
            return original

        def producer(*args: Any, **kwargs: Any) -> Producer:
            new_producer = original(*args, **kwargs)
            rewrap(new_producer, "send_batch", lambda fn: wrap_send_batch(fn, spans))
            rewrap(new_producer, "send", lambda fn: wrap_send(fn, spans))
            return new_producer

        return producer

    def _consumer_patch(self, original: Callable[..., Any]) -> Callable[..., Any]:
        spans = self._spans
        if spans is None:
            return original

        def consumer(*args: Any, **kwargs: Any) -> Consumer:
            new_consumer = original(*args, **kwargs)
            rewrap(new_consumer, "run", lambda fn: _run_patch(fn, spans))
            return new_consumer

        return consumer


def _run_patch(original: Callable[..., Any], spans: SpanFactory) -> Callable[..., Any]:
    def run(config: ConsumerRunConfig, *args: Any, **kwargs: Any) -> Any:
        if config.each_message is not None:
            rewrap(config, "each_message", lambda fn: wrap_each_message(fn, spans))
        if config.each_batch is not None:
            rewrap(config, "each_batch", lambda fn: wrap_each_batch(fn, spans))
        return original(config, *args, **kwargs)

    return run
