"""
Tracing for asynchronous dbapi-like drivers (``aiosqlite``, ``psycopg.AsyncConnection``, ...).

Spans are started and ended synchronously around the awaited driver call;
a cancelled call ends its span with an error status.
"""
import os

from ...internal.logger import get_logger
from ...internal.utils.formats import asbool
from ...settings._config import config
from ..._trace.descriptor import CommandDescriptor
from ..._trace.pin import Pin
from ..dbapi import TracedConnection
from ..dbapi import TracedCursor


log = get_logger(__name__)

config._add(
    "dbapi_async",
    dict(
        trace_fetch_methods=asbool(os.getenv("DBTRACE_DBAPI_ASYNC_TRACE_FETCH_METHODS", default=False)),
        trace_connection_methods=asbool(os.getenv("DBTRACE_DBAPI_ASYNC_TRACE_CONNECTION_METHODS", default=False)),
    ),
)


class TracedAsyncCursor(TracedCursor):
    def __init__(self, cursor, pin, cfg, db_system=None, db_name=None):
        super(TracedAsyncCursor, self).__init__(cursor, pin, cfg or config.dbapi_async, db_system, db_name)

    async def __aenter__(self):
        # previous versions of the dbapi didn't support context managers. let's
        # reference the func that would be called to ensure that errors
        # messages will be the same.
        await self.__wrapped__.__aenter__()

        # and finally, yield the traced cursor.
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return await self.__wrapped__.__aexit__(exc_type, exc_val, exc_tb)

    async def _trace_method(self, method, descriptor, *args, **kwargs):
        """
        Internal function to trace the call to the underlying cursor method
        :param method: The coroutine function to be wrapped
        :param descriptor: The command being run
        :param args: The args that will be passed as positional args to the wrapped method
        :param kwargs: The args that will be passed as kwargs to the wrapped method
        :return: The result of the wrapped method invocation
        """
        pin = Pin.get_from(self)
        if not pin or not pin.enabled():
            return await method(*args, **kwargs)

        with pin.emitter().trace(None, descriptor) as span:
            result = await method(*args, **kwargs)
            if span is not None:
                self._set_rowcount(span)
            return result

    async def executemany(self, query, *args, **kwargs):
        """Wraps the cursor.executemany method"""
        self._self_last_execute_operation = query
        result = await self._trace_method(
            self.__wrapped__.executemany, self._descriptor(query, executemany=True), query, *args, **kwargs
        )
        return self._proxied(result)

    async def execute(self, query, *args, **kwargs):
        """Wraps the cursor.execute method"""
        self._self_last_execute_operation = query
        result = await self._trace_method(self.__wrapped__.execute, self._descriptor(query), query, *args, **kwargs)
        return self._proxied(result)

    async def callproc(self, proc, *args):
        """Wraps the cursor.callproc method"""
        self._self_last_execute_operation = proc
        return await self._trace_method(self.__wrapped__.callproc, self._descriptor(proc), proc, *args)


class FetchTracedAsyncCursor(TracedAsyncCursor):
    """FetchTracedAsyncCursor for the dbapi_async integration"""

    async def fetchone(self, *args, **kwargs):
        """Wraps the cursor.fetchone method"""
        return await self._trace_method(
            self.__wrapped__.fetchone, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )

    async def fetchall(self, *args, **kwargs):
        """Wraps the cursor.fetchall method"""
        return await self._trace_method(
            self.__wrapped__.fetchall, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )

    async def fetchmany(self, *args, **kwargs):
        """Wraps the cursor.fetchmany method"""
        return await self._trace_method(
            self.__wrapped__.fetchmany, self._descriptor(self._self_last_execute_operation), *args, **kwargs
        )


class TracedAsyncConnection(TracedConnection):
    def __init__(self, conn, pin=None, cfg=None, cursor_cls=None, db_system=None, db_name=None):
        cfg = cfg or config.dbapi_async
        if not cursor_cls:
            # Do not trace `fetch*` methods by default
            cursor_cls = FetchTracedAsyncCursor if cfg.get("trace_fetch_methods") else TracedAsyncCursor
        super(TracedAsyncConnection, self).__init__(conn, pin, cfg, cursor_cls, db_system, db_name)

    async def __aenter__(self):
        """Context management is not defined by the dbapi spec.

        This means unfortunately that the database clients each define their own
        implementations.
        """
        result = await self.__wrapped__.__aenter__()
        return self if result is self.__wrapped__ else result

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return await self.__wrapped__.__aexit__(exc_type, exc_val, exc_tb)

    async def _trace_method(self, method, operation, *args, **kwargs):
        pin = Pin.get_from(self)
        if not pin or not pin.enabled() or not self._self_config.get("trace_connection_methods"):
            return await method(*args, **kwargs)

        descriptor = CommandDescriptor(
            db_system=self._self_db_system, db_name=self._self_db_name, command=self.__wrapped__, operation=operation
        )
        with pin.emitter().trace(None, descriptor):
            return await method(*args, **kwargs)

    def cursor(self, *args, **kwargs):
        # `cursor` is synchronous for some drivers (psycopg) and a coroutine for others (aiosqlite)
        cursor = self.__wrapped__.cursor(*args, **kwargs)
        pin = Pin.get_from(self)
        if not pin:
            return cursor
        if hasattr(cursor, "__await__"):
            return self._traced_awaited_cursor(cursor, pin)
        return self._self_cursor_cls(
            cursor, pin, self._self_config, db_system=self._self_db_system, db_name=self._self_db_name
        )

    async def _traced_awaited_cursor(self, coro, pin):
        cursor = await coro
        return self._self_cursor_cls(
            cursor, pin, self._self_config, db_system=self._self_db_system, db_name=self._self_db_name
        )

    async def commit(self, *args, **kwargs):
        return await self._trace_method(self.__wrapped__.commit, "commit", *args, **kwargs)

    async def rollback(self, *args, **kwargs):
        return await self._trace_method(self.__wrapped__.rollback, "rollback", *args, **kwargs)
