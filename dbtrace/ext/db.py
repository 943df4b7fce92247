"""
Standardized attribute keys for database client spans.

The names are wire compatible with the OpenTelemetry database semantic
conventions and must not change.
"""

# tags
SYSTEM = "db.system"  # the database product identifier (sqlite, mssql, ...)
NAME = "db.name"  # the name of the database being accessed
STATEMENT = "db.statement"  # statement text, legacy conventions
QUERY_TEXT = "db.query.text"  # statement text, current conventions
ROWCOUNT = "db.row_count"
BATCH = "db.operation.batch"
OPERATION = "db.operation.name"

# the keys a statement text may be recorded under
STATEMENT_KEYS = (STATEMENT, QUERY_TEXT)
