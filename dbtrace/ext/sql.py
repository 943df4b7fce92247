import re
from typing import Dict  # noqa:F401
from typing import Optional  # noqa:F401

from . import DatabaseSystem


def normalize_vendor(vendor):
    # type: (Optional[str]) -> str
    """Return a canonical name for a type of database."""
    if not vendor:
        return "db"  # should this ever happen?
    vendor = vendor.lower()
    if "sqlite" in vendor:
        return DatabaseSystem.SQLITE.value
    elif "postgres" in vendor or vendor in ("psycopg", "psycopg2"):
        return DatabaseSystem.POSTGRESQL.value
    elif vendor in ("pyodbc", "pymssql") or "mssql" in vendor or "sql server" in vendor or "sqlserver" in vendor:
        return DatabaseSystem.MSSQL.value
    elif vendor in ("mysqldb", "pymysql") or "mysql" in vendor or "mariadb" in vendor:
        return DatabaseSystem.MYSQL.value
    else:
        return vendor


def parse_odbc_connection_string(dsn):
    # type: (str) -> Dict[str, str]
    """
    Return a dictionary of the components of an ODBC connection string.
    Keys are lower cased, values are kept as given.

    >>> parse_odbc_connection_string('DRIVER={ODBC Driver 18 for SQL Server};SERVER=db,1433;DATABASE=master')
    {'driver': 'ODBC Driver 18 for SQL Server', 'server': 'db,1433', 'database': 'master'}
    """
    parsed = {}
    for part in dsn.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        value = value.strip()
        if value.startswith("{") and value.endswith("}"):
            value = value[1:-1]
        parsed[key.strip().lower()] = value
    return parsed


def odbc_database_name(dsn):
    # type: (str) -> Optional[str]
    """Return the database an ODBC connection string targets, if it names one."""
    parsed = parse_odbc_connection_string(dsn)
    return parsed.get("database") or parsed.get("initial catalog") or None


# [22012] [Microsoft][ODBC Driver 18 for SQL Server][SQL Server]Divide by zero error encountered.
#     (8134) (SQLExecDirectW)
_ODBC_PREFIX = re.compile(r"^(?:\[[^\]]*\]\s*)+")
_ODBC_SUFFIX = re.compile(r"(?:\s*\(\w+\))+\s*$")


def odbc_error_message(message):
    # type: (str) -> str
    """Strip the diagnostic prefixes and native error code suffixes an ODBC driver wraps
    around a server message.

    >>> odbc_error_message('[22012] [Microsoft][SQL Server]Divide by zero error encountered. (8134) (SQLExecDirectW)')
    'Divide by zero error encountered.'
    """
    stripped = _ODBC_SUFFIX.sub("", _ODBC_PREFIX.sub("", message))
    return stripped or message
