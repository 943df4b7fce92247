from typing import List  # noqa:F401

from opentelemetry.sdk.trace import ReadableSpan  # noqa:F401
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter as _SdkInMemorySpanExporter,
)


class InMemorySpanExporter(_SdkInMemorySpanExporter):
    """Exporter keeping every finished span in memory, in the order they ended.

    Use it with a ``SimpleSpanProcessor`` so spans are exported as they end::

        exporter = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    On top of ``get_finished_spans`` and ``clear``, :meth:`pop` reads and
    clears the spans in one step.
    """

    def pop(self):
        # type: () -> List[ReadableSpan]
        with self._lock:
            spans = list(self._finished_spans)
            self._finished_spans.clear()
        return spans
