"""
Creation and completion of database client spans.

A traced command goes through ``Pending -> (Filtered-Out | Active) ->
(Ended-Success | Ended-Error)``. :meth:`SpanEmitter.trace` drives the whole
lifecycle around a wrapped call and ends the span on every exit path,
``BaseException`` included::

    emitter = SpanEmitter(config.sqlite3)
    with emitter.trace(None, descriptor) as span:
        cursor.execute(statement)
"""
import contextlib
from typing import Any  # noqa:F401
from typing import Dict  # noqa:F401
from typing import Iterator  # noqa:F401
from typing import Mapping  # noqa:F401
from typing import NamedTuple
from typing import Optional  # noqa:F401

from opentelemetry import context as context_api
from opentelemetry import trace
from opentelemetry.trace import SpanKind
from opentelemetry.trace import Status
from opentelemetry.trace import StatusCode

from ..ext.sql import odbc_error_message
from ..settings._config import config
from ..version import __version__
from . import hooks
from .attributes import command_attributes
from .attributes import span_name
from .descriptor import CommandDescriptor  # noqa:F401


INSTRUMENTATION_NAME = "dbtrace"


class _Success(object):
    __slots__ = ()

    def __repr__(self):
        return "SUCCESS"


SUCCESS = _Success()


class Failure(object):
    """Outcome of a command that raised. ``message`` becomes the span status description."""

    __slots__ = ("message",)

    def __init__(self, message):
        # type: (str) -> None
        self.message = message

    def __repr__(self):
        return "Failure(%r)" % (self.message,)

    def __eq__(self, other):
        return isinstance(other, Failure) and other.message == self.message

    @classmethod
    def from_exception(cls, exc):
        # type: (BaseException) -> Failure
        return cls(error_message(exc))


def error_message(exc):
    # type: (BaseException) -> str
    """Return the message a driver error reports, without the decoration drivers add.

    - wrapper exceptions exposing the driver error as ``orig`` (SQLAlchemy) report the driver error,
    - ODBC errors, raised with ``(sqlstate, message)`` arguments, report the server message only,
    - exceptions without a message report their class name.
    """
    orig = getattr(exc, "orig", None)
    if isinstance(orig, BaseException) and orig is not exc:
        return error_message(orig)

    args = getattr(exc, "args", ())
    if (
        len(args) == 2
        and isinstance(args[0], str)
        and isinstance(args[1], str)
        and len(args[0]) == 5
        and args[1].startswith("[")
    ):
        return odbc_error_message(args[1])

    return str(exc) or exc.__class__.__name__


class SpanHandle(NamedTuple):
    span: trace.Span
    # context holding ``span`` as the current span
    context: context_api.Context
    descriptor: CommandDescriptor


class SpanEmitter(object):
    """Emits client spans for the commands of one integration.

    :param cfg: the integration configuration, i.e. ``config.sqlite3``
    :param tags: extra attributes set on every span, i.e. the tags of a :class:`Pin`
    """

    def __init__(self, cfg, tags=None):
        # type: (Mapping[str, Any], Optional[Dict[str, Any]]) -> None
        self._cfg = cfg
        self._tags = tags

    def _tracer(self):
        # type: () -> trace.Tracer
        provider = self._cfg.get("tracer_provider")
        if provider is None:
            return trace.get_tracer(INSTRUMENTATION_NAME, __version__)
        return provider.get_tracer(INSTRUMENTATION_NAME, __version__)

    def begin(self, descriptor, context=None):
        # type: (CommandDescriptor, Optional[context_api.Context]) -> SpanHandle
        """Start the span of ``descriptor`` as a child of the span current in ``context``, if any."""
        attributes = command_attributes(descriptor, hooks.capture_statement_text(self._cfg), config._semconv_database)
        if self._tags:
            attributes.update(self._tags)
        span = self._tracer().start_span(
            span_name(descriptor),
            context=context,
            kind=SpanKind.CLIENT,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        )
        return SpanHandle(span, trace.set_span_in_context(span, context), descriptor)

    def end(self, handle, outcome):
        # type: (SpanHandle, Any) -> None
        """End the span with the given outcome: ``SUCCESS`` or a :class:`Failure`."""
        if isinstance(outcome, Failure):
            handle.span.set_status(Status(StatusCode.ERROR, outcome.message))
        handle.span.end()

    @contextlib.contextmanager
    def trace(self, provider_name, descriptor):
        # type: (Optional[str], CommandDescriptor) -> Iterator[Optional[trace.Span]]
        """Trace the code run in the ``with`` block as the command ``descriptor`` describes.

        Yields the active span, or ``None`` when tracing is disabled or the
        filter rejected the command. The span is the current span for the
        duration of the block so that spans started underneath nest into it.
        """
        if not config._tracing_enabled or not hooks.should_trace(self._cfg, provider_name, descriptor):
            yield None
            return

        parent_context = context_api.get_current()
        handle = self.begin(descriptor, parent_context)
        token = context_api.attach(handle.context)
        outcome = SUCCESS
        try:
            yield handle.span
            hooks.enrich(self._cfg, handle.span, descriptor)
        except BaseException as e:
            outcome = Failure.from_exception(e)
            raise
        finally:
            context_api.detach(token)
            self.end(handle, outcome)
