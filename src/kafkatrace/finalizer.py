"""Ending spans once a traced operation completes."""

import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from opentelemetry.trace import Span, Status, StatusCode

T = TypeVar("T")


def error_message(reason: object) -> str | None:
    """Best-effort description of a failure."""
    if isinstance(reason, str):
        return reason
    if isinstance(reason, BaseException) and str(reason):
        return str(reason)
    message = getattr(reason, "message", None)
    if isinstance(message, str):
        return message
    return None


def end_spans_on_completion(
    spans: Sequence[Span],
    operation: Callable[[], Awaitable[T] | T],
) -> Awaitable[T]:
    """Run `operation` and end `spans` when its result settles.

    The result or exception of the operation passes through unchanged.
    On failure every span gets an error status before it is ended. An
    exception raised by `operation()` itself is re-raised immediately,
    after the spans have been ended. The returned awaitable must be
    awaited for the spans to end.

    Example:
        spans = [factory.start_producer_span(topic, msg)]
        return await end_spans_on_completion(spans, lambda: send(record))
    """
    try:
        outcome = operation()
    except Exception as e:
        _set_error_status(spans, e)
        _end_spans(spans)
        raise
    except BaseException:
        _end_spans(spans)
        raise
    return _end_spans_on_settle(spans, outcome)


async def _end_spans_on_settle(spans: Sequence[Span], outcome: Any) -> Any:
    try:
        if inspect.isawaitable(outcome):
            return await outcome
        return outcome
    except Exception as e:
        _set_error_status(spans, e)
        raise
    finally:
        _end_spans(spans)


def _set_error_status(spans: Sequence[Span], reason: Exception) -> None:
    status = Status(StatusCode.ERROR, error_message(reason))
    for span in spans:
        span.set_status(status)


def _end_spans(spans: Sequence[Span]) -> None:
    for span in spans:
        span.end()
