"""
Database backends the integration tests run against.

A backend only hands out connection strings; starting and stopping the
server is left to the CI workflow (SQL Server) or needs nothing at all
(SQLite). Tests needing a backend that is not reachable are skipped.
"""
import os
import tempfile
from urllib.parse import quote_plus

import pytest

from tests.contrib.config import MSSQL_CONFIG


class NotSupportedError(Exception):
    """Raised for a backend the test fixtures know nothing about"""


class DatabaseFixture(object):
    #: the ``db.system`` of the spans of this backend
    db_system = None
    #: the ``db.name`` of the spans of this backend
    db_name = None

    def get_connection_string(self):
        # type: () -> str
        raise NotImplementedError

    def get_sqlalchemy_url(self):
        # type: () -> str
        raise NotImplementedError

    def skip_if_unavailable(self):
        pass

    def close(self):
        pass


class SqliteFixture(DatabaseFixture):
    db_system = "sqlite"
    db_name = "main"

    def __init__(self):
        fd, self.path = tempfile.mkstemp(suffix=".db")
        os.close(fd)

    def get_connection_string(self):
        return self.path

    def get_sqlalchemy_url(self):
        return "sqlite:///%s" % (self.path,)

    def close(self):
        if os.path.exists(self.path):
            os.remove(self.path)


class SqlServerFixture(DatabaseFixture):
    db_system = "mssql"

    def __init__(self, config=None):
        self.config = config or MSSQL_CONFIG
        self.db_name = self.config["database"]

    def get_connection_string(self):
        return (
            "DRIVER={{{driver}}};SERVER={host},{port};DATABASE={database};UID={user};PWD={password};"
            "TrustServerCertificate=yes;Encrypt=no".format(**self.config)
        )

    def get_sqlalchemy_url(self):
        return "mssql+pyodbc:///?odbc_connect=%s" % (quote_plus(self.get_connection_string()),)

    def skip_if_unavailable(self):
        pyodbc = pytest.importorskip("pyodbc")
        try:
            conn = pyodbc.connect(self.get_connection_string(), timeout=3)
        except pyodbc.Error as e:
            pytest.skip("SQL Server is not reachable: %s" % (e,))
        else:
            conn.close()


_BACKENDS = {
    "sqlite": SqliteFixture,
    "mssql": SqlServerFixture,
}


def get_backend(name):
    # type: (str) -> DatabaseFixture
    """Return the fixture of the backend ``name``

    :raises NotSupportedError: for unknown backends
    """
    try:
        backend_cls = _BACKENDS[name]
    except KeyError:
        raise NotSupportedError("%s is not a supported backend" % (name,))
    return backend_cls()
