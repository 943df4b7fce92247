from typing import Any  # noqa:F401
from typing import Mapping  # noqa:F401
from typing import Optional  # noqa:F401

from opentelemetry.trace import Span  # noqa:F401
import wrapt

from ..internal.logger import get_logger
from .descriptor import CommandDescriptor  # noqa:F401


log = get_logger(__name__)


class EnrichedSpan(wrapt.ObjectProxy):
    """The span handed to enrichment callbacks.

    Attributes can be added or overwritten; the status belongs to the
    instrumentation and ``set_status`` is ignored.
    """

    def set_status(self, *args, **kwargs):
        log.debug("enrich_with_command may not set the status of span %s", getattr(self.__wrapped__, "name", None))


def should_trace(cfg, provider_name, descriptor):
    # type: (Mapping[str, Any], Optional[str], CommandDescriptor) -> bool
    """Run the configured filter, if any. Without a filter every command is traced.

    Exceptions raised by the filter are not caught.
    """
    command_filter = cfg.get("filter")
    if command_filter is None:
        return True
    if not command_filter(provider_name, descriptor):
        log.debug("command filtered out: provider=%s, system=%s", provider_name, descriptor.db_system)
        return False
    return True


def enrich(cfg, span, descriptor):
    # type: (Mapping[str, Any], Span, CommandDescriptor) -> None
    """Run the configured enrichment callback, if any, on a span that is still recording."""
    enrich_with_command = cfg.get("enrich_with_command")
    if enrich_with_command is None or not span.is_recording():
        return
    enrich_with_command(EnrichedSpan(span), descriptor)


def capture_statement_text(cfg):
    # type: (Mapping[str, Any]) -> bool
    return bool(cfg.get("set_db_statement_for_text", False))
