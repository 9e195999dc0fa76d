"""Spans around cache-aside reads and writes (OpenTelemetry API only).

With no SDK installed the tracer hands out non-recording spans, so these
helpers cost next to nothing and need no configuration.
"""

from contextlib import AbstractContextManager
from types import TracebackType

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

_tracer = trace.get_tracer("bookstore.cache_aside")


def add_span_attributes(**attributes: str | int | float | bool) -> None:
    """Set attributes on the active span, if it records."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)


class TracedOperation:
    """async with TracedOperation("cache_aside.read_through", {"cache.key": key}): ...

    The span is current inside the block. A failure is recorded on the span
    with ERROR status and propagates unchanged.
    """

    def __init__(
        self, operation_name: str, attributes: dict[str, str | int | float | bool] | None = None
    ) -> None:
        self.operation_name = operation_name
        self.attributes = attributes or {}
        self._cm: AbstractContextManager[trace.Span] | None = None
        self.span: trace.Span | None = None

    async def __aenter__(self) -> "TracedOperation":
        self._cm = _tracer.start_as_current_span(
            self.operation_name,
            attributes=self.attributes,
            record_exception=False,
            set_status_on_exception=False,
        )
        self.span = self._cm.__enter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.span is not None:
            if exc is None:
                self.span.set_status(Status(StatusCode.OK))
            else:
                self.span.set_status(Status(StatusCode.ERROR, str(exc)))
                self.span.record_exception(exc)
        if self._cm is not None:
            self._cm.__exit__(exc_type, exc, tb)
