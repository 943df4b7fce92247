"""
The pyodbc integration instruments the pyodbc library to trace pyodbc queries.


Enabling
~~~~~~~~

Use :func:`patch()<dbtrace.patch>` to enable the integration::

    from dbtrace import patch
    patch(pyodbc=True)


Global Configuration
~~~~~~~~~~~~~~~~~~~~

.. py:data:: dbtrace.config.pyodbc["set_db_statement_for_text"]

   Whether the statement text is recorded on spans.

   This option can also be set with the ``DBTRACE_PYODBC_SET_DB_STATEMENT_FOR_TEXT``
   environment variable.

   Default: ``False``

.. py:data:: dbtrace.config.pyodbc["trace_fetch_methods"]

   Whether or not to trace fetch methods.

   Can also configured via the ``DBTRACE_PYODBC_TRACE_FETCH_METHODS`` environment variable.

   Default: ``False``


The database system is read from the driver (``SQL_DBMS_NAME``), the
database name from the connection string (``DATABASE`` or
``Initial Catalog``) and, when the connection string does not name one,
from the driver (``SQL_DATABASE_NAME``).
"""
