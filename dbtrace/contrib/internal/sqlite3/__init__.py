"""
The sqlite integration instruments the built-in sqlite module to trace SQLite queries.


Enabling
~~~~~~~~

Use :func:`patch()<dbtrace.patch>` to enable the integration::

    from dbtrace import patch
    patch(sqlite3=True)


Global Configuration
~~~~~~~~~~~~~~~~~~~~

.. py:data:: dbtrace.config.sqlite3["set_db_statement_for_text"]

   Whether the statement text is recorded on spans.

   This option can also be set with the ``DBTRACE_SQLITE3_SET_DB_STATEMENT_FOR_TEXT``
   environment variable.

   Default: ``False``

.. py:data:: dbtrace.config.sqlite3["trace_fetch_methods"]

   Whether or not to trace fetch methods.

   Can also configured via the ``DBTRACE_SQLITE3_TRACE_FETCH_METHODS`` environment variable.

   Default: ``False``


Instance Configuration
~~~~~~~~~~~~~~~~~~~~~~

To configure the integration on an per-connection basis use the
``Pin`` API::

    from dbtrace import Pin
    import sqlite3

    # This will report a span with the default settings
    db = sqlite3.connect(":memory:")

    # Use a pin to add attributes to the spans of this connection.
    Pin.override(db, tags={"peer.service": "sqlite-users"})

    cursor = db.cursor()
    cursor.execute("select * from users where id = 1")
"""
