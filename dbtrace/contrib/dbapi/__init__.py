"""
Generic dbapi tracing code.

The driver layer: connections returned by a patched PEP 249 ``connect``
are wrapped in :class:`TracedConnection`, whose cursors trace
``execute``, ``executemany`` and ``callproc``. The filter hook is called
with a ``None`` provider name, a driver cannot tell which library issued
the command.
"""
import os

import wrapt

from ...ext import db
from ...ext.sql import normalize_vendor
from ...internal.logger import get_logger
from ...internal.utils.formats import asbool
from ...settings._config import config
from ..._trace.descriptor import CommandDescriptor
from ..._trace.pin import Pin


log = get_logger(__name__)

config._add(
    "dbapi",
    dict(
        trace_fetch_methods=asbool(os.getenv("DBTRACE_DBAPI_TRACE_FETCH_METHODS", default=False)),
        trace_connection_methods=asbool(os.getenv("DBTRACE_DBAPI_TRACE_CONNECTION_METHODS", default=False)),
    ),
)


class TracedCursor(wrapt.ObjectProxy):
    """TracedCursor wraps a dbapi cursor and traces its queries."""

    def __init__(self, cursor, pin, cfg, db_system=None, db_name=None):
        super(TracedCursor, self).__init__(cursor)
        pin.onto(self)
        self._self_config = cfg or config.dbapi
        self._self_db_system = db_system
        self._self_db_name = db_name
        self._self_last_execute_operation = None

    def _descriptor(self, statement, executemany=False):
        return CommandDescriptor.for_statement(
            statement,
            db_system=self._self_db_system,
            db_name=self._self_db_name,
            command=self.__wrapped__,
            executemany=executemany,
        )

    def _trace_method(self, method, descriptor, *args, **kwargs):
        """
        Internal function to trace the call to the underlying cursor method
        :param method: The callable to be wrapped
        :param descriptor: The command being run
        :param args: The args that will be passed as positional args to the wrapped method
        :param kwargs: The args that will be passed as kwargs to the wrapped method
        :return: The result of the wrapped method invocation
        """
        pin = Pin.get_from(self)
        if not pin or not pin.enabled():
            return method(*args, **kwargs)

        with pin.emitter().trace(None, descriptor) as span:
            result = method(*args, **kwargs)
            if span is not None:
                self._set_rowcount(span)
            return result

    def _set_rowcount(self, span):
        row_count = getattr(self.__wrapped__, "rowcount", None)
        if isinstance(row_count, int) and row_count >= 0:
            span.set_attribute(db.ROWCOUNT, row_count)

    def _proxied(self, result):
        # DEV: several drivers return the cursor itself from `execute`, keep chained calls traced
        return self if result is self.__wrapped__ else result

    def executemany(self, query, *args, **kwargs):
        """Wraps the cursor.executemany method"""
        self._self_last_execute_operation = query
        result = self._trace_method(
            self.__wrapped__.executemany, self._descriptor(query, executemany=True), query, *args, **kwargs
        )
        return self._proxied(result)

    def execute(self, query, *args, **kwargs):
        """Wraps the cursor.execute method"""
        self._self_last_execute_operation = query
        result = self._trace_method(self.__wrapped__.execute, self._descriptor(query), query, *args, **kwargs)
        return self._proxied(result)

    def callproc(self, proc, *args):
        """Wraps the cursor.callproc method"""
        self._self_last_execute_operation = proc
        return self._trace_method(self.__wrapped__.callproc, self._descriptor(proc), proc, *args)

    def __enter__(self):
        # previous versions of the dbapi didn't support context managers. let's
        # reference the func that would be called to ensure that errors
        # messages will be the same.
        self.__wrapped__.__enter__()

        # and finally, yield the traced cursor.
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self.__wrapped__.__exit__(exc_type, exc_val, exc_tb)


class FetchTracedCursor(TracedCursor):
    """
    Sub-class of :class:`TracedCursor` that also instruments `fetchone`, `fetchall`, and `fetchmany` methods.

    We do not trace these functions by default since they can get very noisy (e.g. `fetchone` with 100k rows).
    """

    def fetchone(self, *args, **kwargs):
        """Wraps the cursor.fetchone method"""
        return self._trace_method(
            self.__wrapped__.fetchone, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )

    def fetchall(self, *args, **kwargs):
        """Wraps the cursor.fetchall method"""
        return self._trace_method(
            self.__wrapped__.fetchall, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )

    def fetchmany(self, *args, **kwargs):
        """Wraps the cursor.fetchmany method"""
        return self._trace_method(
            self.__wrapped__.fetchmany, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )


class TracedConnection(wrapt.ObjectProxy):
    """TracedConnection wraps a Connection with tracing code."""

    def __init__(self, conn, pin=None, cfg=None, cursor_cls=None, db_system=None, db_name=None):
        super(TracedConnection, self).__init__(conn)
        self._self_config = cfg or config.dbapi
        self._self_db_system = db_system or _get_vendor(conn)
        self._self_db_name = db_name
        if not cursor_cls:
            # Do not trace `fetch*` methods by default
            cursor_cls = FetchTracedCursor if self._self_config.get("trace_fetch_methods") else TracedCursor
        self._self_cursor_cls = cursor_cls
        db_pin = pin or Pin(_config=self._self_config)
        db_pin.onto(self)

    def _trace_method(self, method, operation, *args, **kwargs):
        pin = Pin.get_from(self)
        if not pin or not pin.enabled() or not self._self_config.get("trace_connection_methods"):
            return method(*args, **kwargs)

        descriptor = CommandDescriptor(
            db_system=self._self_db_system, db_name=self._self_db_name, command=self.__wrapped__, operation=operation
        )
        with pin.emitter().trace(None, descriptor):
            return method(*args, **kwargs)

    def cursor(self, *args, **kwargs):
        cursor = self.__wrapped__.cursor(*args, **kwargs)
        pin = Pin.get_from(self)
        if not pin:
            return cursor
        return self._self_cursor_cls(
            cursor, pin, self._self_config, db_system=self._self_db_system, db_name=self._self_db_name
        )

    def commit(self, *args, **kwargs):
        return self._trace_method(self.__wrapped__.commit, "commit", *args, **kwargs)

    def rollback(self, *args, **kwargs):
        return self._trace_method(self.__wrapped__.rollback, "rollback", *args, **kwargs)

    def __enter__(self):
        """Context management is not defined by the dbapi spec.

        This means unfortunately that the database clients each define their own
        implementations.

        Keep the proxy in place of whatever ``__enter__`` returns when it is the connection itself.
        """
        result = self.__wrapped__.__enter__()
        return self if result is self.__wrapped__ else result

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self.__wrapped__.__exit__(exc_type, exc_val, exc_tb)


def _get_vendor(conn):
    """Return the vendor (e.g postgres, mysql) of the given
    database.
    """
    try:
        name = _get_module_name(conn)
    except Exception:
        log.debug("couldn't parse module name", exc_info=True)
        name = "sql"
    return normalize_vendor(name)


def _get_module_name(conn):
    return conn.__class__.__module__.split(".")[0]
