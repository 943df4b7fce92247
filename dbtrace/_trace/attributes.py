from typing import Dict  # noqa:F401
from typing import Optional  # noqa:F401

from opentelemetry.util.types import AttributeValue  # noqa:F401

from ..ext import db
from ..settings._config import SEMCONV_STABLE
from .descriptor import CommandDescriptor  # noqa:F401


DEFAULT_SPAN_NAME = "db"


def statement_key(semconv):
    # type: (str) -> str
    """Return the attribute key statement text is recorded under for the given convention version."""
    return db.QUERY_TEXT if semconv == SEMCONV_STABLE else db.STATEMENT


def command_attributes(descriptor, capture_statement_text, semconv):
    # type: (CommandDescriptor, bool, str) -> Dict[str, AttributeValue]
    """Map a command descriptor onto span attributes.

    Same inputs always give the same mapping. Fields the descriptor does
    not know about are left out rather than given a placeholder value.
    """
    attributes = {}  # type: Dict[str, AttributeValue]
    if descriptor.db_system:
        attributes[db.SYSTEM] = descriptor.db_system
    if descriptor.db_name:
        attributes[db.NAME] = descriptor.db_name
    if capture_statement_text and descriptor.statement:
        attributes[statement_key(semconv)] = descriptor.statement
    if descriptor.executemany:
        attributes[db.BATCH] = True
    if descriptor.operation:
        attributes[db.OPERATION] = descriptor.operation
    return attributes


def span_name(descriptor):
    # type: (CommandDescriptor) -> str
    return descriptor.db_name or descriptor.db_system or DEFAULT_SPAN_NAME
