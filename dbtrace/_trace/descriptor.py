import dataclasses
from typing import Any
from typing import Optional

from ..internal.utils.formats import ensure_text


@dataclasses.dataclass(frozen=True)
class CommandDescriptor:
    """Snapshot of the command an instrumentation is about to run.

    Policy hooks receive it as is; they annotate spans through the span
    they are given, never through the descriptor.
    """

    db_system: Optional[str] = None
    db_name: Optional[str] = None
    statement: Optional[str] = None
    # the driver object executing the command, usually a DB-API cursor
    command: Any = dataclasses.field(default=None, compare=False, repr=False)
    executemany: bool = False
    # what the command does when it is not a statement, i.e. ``commit``
    operation: Optional[str] = None

    @classmethod
    def for_statement(cls, statement, **kwargs):
        # type: (Any, Any) -> CommandDescriptor
        """Build a descriptor from whatever a driver accepts as a statement
        (``str``, ``bytes`` or a composable object)."""
        if statement is None or isinstance(statement, str):
            text = statement
        elif isinstance(statement, bytes):
            text = ensure_text(statement)
        else:
            text = str(statement)
        return cls(statement=text, **kwargs)
