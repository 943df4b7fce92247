import sqlalchemy
from wrapt import wrap_function_wrapper as _w

from ....internal.utils.wrappers import unwrap
from ....settings._config import config
from .engine import _wrap_create_engine


config._add("sqlalchemy", {})


def get_version():
    # type: () -> str
    return getattr(sqlalchemy, "__version__", "")


def patch():
    if getattr(sqlalchemy.engine, "_dbtrace_patch", False):
        return
    sqlalchemy.engine._dbtrace_patch = True

    # patch the engine creation function
    _w("sqlalchemy", "create_engine", _wrap_create_engine)
    _w("sqlalchemy.engine", "create_engine", _wrap_create_engine)


def unpatch():
    # unpatch sqlalchemy
    if getattr(sqlalchemy.engine, "_dbtrace_patch", False):
        sqlalchemy.engine._dbtrace_patch = False
        unwrap(sqlalchemy, "create_engine")
        unwrap(sqlalchemy.engine, "create_engine")
