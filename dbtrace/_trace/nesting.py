"""
Parenting of spans emitted by stacked instrumentations.

When SQLAlchemy and the DB-API driver it drives are both instrumented, one
logical command produces a span in each layer. The driver span is created
while the SQLAlchemy span is the current span of the execution context, so
it becomes its child; with no active span it is a root of its own.

The helpers working on finished spans answer the questions asked about
such a trace: which span is the canonical record of the call (the
outermost one), and whether every span belongs to it.
"""
from typing import Dict  # noqa:F401
from typing import List  # noqa:F401
from typing import Optional  # noqa:F401
from typing import Sequence  # noqa:F401

from opentelemetry import trace
from opentelemetry.context import Context  # noqa:F401
from opentelemetry.sdk.trace import ReadableSpan  # noqa:F401


def resolve_parent(context):
    # type: (Optional[Context]) -> Optional[trace.Span]
    """Return the span new spans created in ``context`` are children of.

    The context is only read. ``None`` is returned when it holds no valid span.
    """
    if context is None:
        return None
    span = trace.get_current_span(context)
    if not span.get_span_context().is_valid:
        return None
    return span


def _parent_id(span):
    # type: (ReadableSpan) -> Optional[int]
    return span.parent.span_id if span.parent is not None else None


def root_spans(spans):
    # type: (Sequence[ReadableSpan]) -> List[ReadableSpan]
    """Spans without a parent among the given spans, in start order."""
    roots = [span for span in spans if span.parent is None]
    return sorted(roots, key=lambda s: s.start_time or 0)


def canonical_span(spans):
    # type: (Sequence[ReadableSpan]) -> Optional[ReadableSpan]
    """Return the span representing a logical call: the outermost one.

    :raises ValueError: if the spans hold more than one root.
    """
    roots = root_spans(spans)
    if not roots:
        return None
    if len(roots) > 1:
        raise ValueError("Multiple root spans found {0!r}".format([s.name for s in roots]))
    return roots[0]


def is_descendant(span, root, spans):
    # type: (ReadableSpan, ReadableSpan, Sequence[ReadableSpan]) -> bool
    """Whether ``span`` is ``root`` or one of its descendants, walking parents through ``spans``."""
    by_id = {s.context.span_id: s for s in spans}  # type: Dict[int, ReadableSpan]
    root_id = root.context.span_id
    current = span  # type: Optional[ReadableSpan]
    seen = set()
    while current is not None:
        span_id = current.context.span_id
        if span_id == root_id:
            return current.context.trace_id == root.context.trace_id
        if span_id in seen:
            return False
        seen.add(span_id)
        parent_id = _parent_id(current)
        current = by_id.get(parent_id) if parent_id is not None else None
    return False


class SpanNode(object):
    """A finished span with its children, as built by :func:`build_tree`."""

    __slots__ = ("span", "children")

    def __init__(self, span, children):
        # type: (ReadableSpan, List[SpanNode]) -> None
        self.span = span
        self.children = children

    def __repr__(self):
        return "SpanNode(name=%r, children=%r)" % (self.span.name, self.children)

    def walk(self):
        yield self.span
        for child in self.children:
            for span in child.walk():
                yield span


def build_tree(spans, root):
    # type: (Sequence[ReadableSpan], ReadableSpan) -> SpanNode
    """helper to build a tree structure for the provided root span"""
    children = []
    for span in spans:
        if _parent_id(span) == root.context.span_id:
            children.append(build_tree(spans, span))
    return SpanNode(root, children)
