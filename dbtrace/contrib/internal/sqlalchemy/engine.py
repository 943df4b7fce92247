"""
To trace sqlalchemy queries, add instrumentation to the engine class or
instance you are using::

    from dbtrace.contrib.internal.sqlalchemy.engine import trace_engine
    from sqlalchemy import create_engine

    engine = create_engine('sqlite:///:memory:')
    trace_engine(engine, tags={'peer.service': 'users-db'})

    engine.connect().execute('select count(*) from users')

The engine's dialect runs every statement through ``do_execute``,
``do_execute_no_params`` or ``do_executemany``; those are wrapped so that
the span is the current span while the driver runs the statement.
"""
from typing import Any  # noqa:F401
from typing import Dict  # noqa:F401
from typing import Optional  # noqa:F401

from wrapt import wrap_function_wrapper as _w

from ....ext import DatabaseSystem
from ....ext import db
from ....ext.sql import normalize_vendor
from ....ext.sql import odbc_database_name
from ....internal.logger import get_logger
from ....internal.utils.wrappers import iswrapped
from ....settings._config import config
from ...._trace.descriptor import CommandDescriptor
from ...._trace.pin import Pin


log = get_logger(__name__)

# the schema every sqlite connection opens its database as
SQLITE_DATABASE_NAME = "main"

_DIALECT_METHODS = ("do_execute", "do_execute_no_params", "do_executemany")


def trace_engine(engine, tags=None):
    # type: (Any, Optional[Dict[str, Any]]) -> None
    """
    Add tracing to the given sqlalchemy engine or instance.

    :param sqlalchemy.Engine engine: a SQLAlchemy engine class or instance
    :param dict tags: attributes set on every span of this engine
    """
    EngineTracer(engine, tags)


def _wrap_create_engine(func, module, args, kwargs):
    """Trace the SQLAlchemy engine, creating an `EngineTracer`
    object that will install the wrappers on the engine dialect.
    """
    engine = func(*args, **kwargs)
    EngineTracer(engine)
    return engine


class EngineTracer(object):
    def __init__(self, engine, tags=None):
        # type: (Any, Optional[Dict[str, Any]]) -> None
        self.engine = engine
        self.dialect = engine.dialect
        self.provider_name = _provider_name(self.dialect)
        self.db_system = normalize_vendor(getattr(self.dialect, "name", "")) if self.dialect is not None else None
        self.db_name = _database_name(engine)

        # attach the PIN
        Pin(tags=tags, _config=config.sqlalchemy).onto(engine)

        for method in _DIALECT_METHODS:
            if not hasattr(self.dialect, method):
                continue
            # a dialect shared by several engines is only wrapped once
            if iswrapped(self.dialect, method):
                log.debug("%s.%s is already traced", type(self.dialect).__name__, method)
                continue
            _w(self.dialect, method, self._trace_execute)

    def _trace_execute(self, wrapped, instance, args, kwargs):
        pin = Pin.get_from(self.engine)
        if not pin or not pin.enabled():
            return wrapped(*args, **kwargs)

        cursor = args[0] if args else kwargs.get("cursor")
        statement = args[1] if len(args) > 1 else kwargs.get("statement")
        descriptor = CommandDescriptor.for_statement(
            statement,
            db_system=self.db_system,
            db_name=self.db_name,
            command=cursor,
            executemany=wrapped.__name__ == "do_executemany",
        )
        with pin.emitter().trace(self.provider_name, descriptor) as span:
            result = wrapped(*args, **kwargs)
            if span is not None:
                _set_rowcount(span, cursor)
            return result


def _set_rowcount(span, cursor):
    row_count = getattr(cursor, "rowcount", None)
    if isinstance(row_count, int) and row_count >= 0:
        span.set_attribute(db.ROWCOUNT, row_count)


def _provider_name(dialect):
    # type: (Any) -> Optional[str]
    name = getattr(dialect, "name", None)
    if not name:
        return None
    driver = getattr(dialect, "driver", None)
    return "%s+%s" % (name, driver) if driver else name


def _database_name(engine):
    # type: (Any) -> Optional[str]
    url = getattr(engine, "url", None)
    if url is None:
        return None
    if normalize_vendor(url.get_backend_name()) == DatabaseSystem.SQLITE.value:
        return SQLITE_DATABASE_NAME
    if url.database:
        return url.database
    odbc_connect = url.query.get("odbc_connect")
    if isinstance(odbc_connect, str):
        return odbc_database_name(odbc_connect)
    return None
