import os

import pyodbc
from wrapt import wrap_function_wrapper as _w

from ....ext.sql import normalize_vendor
from ....ext.sql import odbc_database_name
from ....internal.logger import get_logger
from ....internal.utils.formats import asbool
from ....internal.utils.wrappers import unwrap as _u
from ....settings._config import config
from ...._trace.pin import Pin
from ...dbapi import FetchTracedCursor
from ...dbapi import TracedConnection
from ...dbapi import TracedCursor


log = get_logger(__name__)

config._add(
    "pyodbc",
    dict(
        trace_fetch_methods=asbool(os.getenv("DBTRACE_PYODBC_TRACE_FETCH_METHODS", default=False)),
        trace_connection_methods=asbool(os.getenv("DBTRACE_PYODBC_TRACE_CONNECTION_METHODS", default=False)),
    ),
)


def get_version():
    # type: () -> str
    return pyodbc.version


def patch():
    if getattr(pyodbc, "_dbtrace_patch", False):
        return
    pyodbc._dbtrace_patch = True
    _w("pyodbc", "connect", _connect)
    log.debug("patched pyodbc.connect")


def unpatch():
    if getattr(pyodbc, "_dbtrace_patch", False):
        pyodbc._dbtrace_patch = False
        _u(pyodbc, "connect")


def _connect(connect_func, _, args, kwargs):
    conn = connect_func(*args, **kwargs)
    return patch_conn(conn, _database_from_arguments(args, kwargs))


def patch_conn(conn, db_name=None):
    try:
        db_system = normalize_vendor(conn.getinfo(pyodbc.SQL_DBMS_NAME))
    except pyodbc.Error:
        log.debug("could not read the dbms name of %r", conn, exc_info=True)
        db_system = "pyodbc"
    if db_name is None:
        db_name = _database_from_driver(conn)

    wrapped = PyODBCTracedConnection(conn, db_system=db_system, db_name=db_name)
    Pin(_config=config.pyodbc).onto(wrapped)
    return wrapped


def _database_from_arguments(args, kwargs):
    # pyodbc appends keyword arguments to the connection string
    for key in ("database", "DATABASE", "Database"):
        if kwargs.get(key):
            return kwargs[key]
    dsn = args[0] if args else kwargs.get("connstring")
    if isinstance(dsn, str):
        return odbc_database_name(dsn)
    return None


def _database_from_driver(conn):
    try:
        return conn.getinfo(pyodbc.SQL_DATABASE_NAME) or None
    except pyodbc.Error:
        log.debug("could not read the database name of %r", conn, exc_info=True)
        return None


class PyODBCTracedCursor(TracedCursor):
    pass


class PyODBCTracedFetchCursor(PyODBCTracedCursor, FetchTracedCursor):
    pass


class PyODBCTracedConnection(TracedConnection):
    def __init__(self, conn, pin=None, cursor_cls=None, db_system=None, db_name=None):
        if not cursor_cls:
            # Do not trace `fetch*` methods by default
            cursor_cls = PyODBCTracedFetchCursor if config.pyodbc.get("trace_fetch_methods") else PyODBCTracedCursor

        super(PyODBCTracedConnection, self).__init__(
            conn, pin=pin, cfg=config.pyodbc, cursor_cls=cursor_cls, db_system=db_system, db_name=db_name
        )

    # pyodbc connections run statements on a fresh cursor
    def execute(self, *args, **kwargs):
        return self.cursor().execute(*args, **kwargs)
