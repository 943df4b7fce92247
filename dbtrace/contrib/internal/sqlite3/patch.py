import os
import sqlite3
import sqlite3.dbapi2

import wrapt

from ....ext import DatabaseSystem
from ....internal.logger import get_logger
from ....internal.utils.formats import asbool
from ....settings._config import config
from ...._trace.pin import Pin
from ...dbapi import FetchTracedCursor
from ...dbapi import TracedConnection
from ...dbapi import TracedCursor


log = get_logger(__name__)

# Original connect method
_connect = sqlite3.connect

# the schema every sqlite connection opens its database as
SQLITE_DATABASE_NAME = "main"

config._add(
    "sqlite3",
    dict(
        trace_fetch_methods=asbool(os.getenv("DBTRACE_SQLITE3_TRACE_FETCH_METHODS", default=False)),
        trace_connection_methods=asbool(os.getenv("DBTRACE_SQLITE3_TRACE_CONNECTION_METHODS", default=False)),
    ),
)


def get_version():
    # type: () -> str
    return sqlite3.sqlite_version


def patch():
    if getattr(sqlite3, "_dbtrace_patch", False):
        return
    sqlite3._dbtrace_patch = True

    wrapped = wrapt.FunctionWrapper(_connect, traced_connect)

    setattr(sqlite3, "connect", wrapped)
    setattr(sqlite3.dbapi2, "connect", wrapped)
    log.debug("patched sqlite3.connect")


def unpatch():
    if not getattr(sqlite3, "_dbtrace_patch", False):
        return
    sqlite3._dbtrace_patch = False

    sqlite3.connect = _connect
    sqlite3.dbapi2.connect = _connect


def traced_connect(func, _, args, kwargs):
    conn = func(*args, **kwargs)
    return patch_conn(conn)


def patch_conn(conn):
    wrapped = TracedSQLite(conn)
    Pin(_config=config.sqlite3).onto(wrapped)
    return wrapped


class TracedSQLiteCursor(TracedCursor):
    def executescript(self, script, *args, **kwargs):
        self._self_last_execute_operation = script
        result = self._trace_method(self.__wrapped__.executescript, self._descriptor(script), script, *args, **kwargs)
        return self._proxied(result)


class TracedSQLiteFetchCursor(TracedSQLiteCursor, FetchTracedCursor):
    pass


class TracedSQLite(TracedConnection):
    def __init__(self, conn, pin=None, cursor_cls=None):
        if not cursor_cls:
            # Do not trace `fetch*` methods by default
            cursor_cls = TracedSQLiteFetchCursor if config.sqlite3.get("trace_fetch_methods") else TracedSQLiteCursor

        super(TracedSQLite, self).__init__(
            conn,
            pin=pin,
            cfg=config.sqlite3,
            cursor_cls=cursor_cls,
            db_system=DatabaseSystem.SQLITE.value,
            db_name=SQLITE_DATABASE_NAME,
        )

    # sqlite has a few extra sugar functions
    def execute(self, *args, **kwargs):
        return self.cursor().execute(*args, **kwargs)

    def executemany(self, *args, **kwargs):
        return self.cursor().executemany(*args, **kwargs)

    def executescript(self, *args, **kwargs):
        return self.cursor().executescript(*args, **kwargs)

    def backup(self, target, *args, **kwargs):
        # sqlite3 checks the type of `target`, it cannot be a wrapped connection
        # https://github.com/python/cpython/blob/4652093e1b816b78e9a585d671a807ce66427417/Modules/_sqlite/connection.c#L1897-L1899
        if isinstance(target, TracedConnection):
            target = target.__wrapped__
        return self.__wrapped__.backup(target, *args, **kwargs)
