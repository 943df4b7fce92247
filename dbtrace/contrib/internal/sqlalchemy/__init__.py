"""
Enabling the SQLAlchemy integration is only necessary if there is no
instrumentation available or enabled for the underlying database engine (e.g.
pymysql, psycopg, mysql-connector, etc.). When the driver is instrumented too,
its spans are recorded as children of the SQLAlchemy spans.

To trace sqlalchemy queries, add instrumentation to the engine class
using the patch method that **must be called before** importing sqlalchemy::

    # patch before importing `create_engine`
    from dbtrace import patch
    patch(sqlalchemy=True)

    # use SQLAlchemy as usual
    from sqlalchemy import create_engine

    engine = create_engine('sqlite:///:memory:')
    engine.connect().execute("SELECT COUNT(*) FROM users")

An engine created before patching can be traced explicitly::

    from dbtrace.contrib.internal.sqlalchemy.engine import trace_engine

    trace_engine(engine)


The filter hook receives ``"<dialect>+<driver>"`` as the provider name,
i.e. ``"sqlite+pysqlite"`` or ``"mssql+pyodbc"``.
"""
