import types
from unittest import mock

import pytest


sqlalchemy = pytest.importorskip("sqlalchemy")

from sqlalchemy import exc as sa_exc  # noqa: E402
from sqlalchemy import orm  # noqa: E402

from dbtrace import config  # noqa: E402
from dbtrace._trace.pin import Pin  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.engine import _database_name  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.engine import _provider_name  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.engine import trace_engine  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.patch import get_version  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.patch import patch  # noqa: E402
from dbtrace.contrib.internal.sqlalchemy.patch import unpatch  # noqa: E402
from dbtrace.ext import db  # noqa: E402
from dbtrace.internal.utils.wrappers import iswrapped  # noqa: E402
from dbtrace.provider import TracerProviderBuilder  # noqa: E402
from tests.contrib.fixtures import SqliteFixture  # noqa: E402
from tests.contrib.patch import PatchMixin  # noqa: E402
from tests.utils import TestSpanContainer  # noqa: E402
from tests.utils import TracerTestCase  # noqa: E402
from tests.utils import assert_is_error  # noqa: E402
from tests.utils import assert_is_ok  # noqa: E402
from tests.utils import assert_no_statement  # noqa: E402


Base = orm.declarative_base()


class Player(Base):
    __tablename__ = "players"

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    name = sqlalchemy.Column(sqlalchemy.String(32))


# the instrumentation of the DB-API driver each backend runs on
DRIVER_INTEGRATIONS = {
    "sqlite": "sqlite3",
    "mssql": "pyodbc",
}

PROVIDER_NAMES = {
    "sqlite": "sqlite+pysqlite",
    "mssql": "mssql+pyodbc",
}


class Spans(TestSpanContainer):
    def __init__(self, exporter):
        self.exporter = exporter

    def get_spans(self):
        return self.exporter.get_finished_spans()


def _enrich(span, descriptor):
    span.set_attribute("enriched", "yes")


def _build(backend, **options):
    return (
        TracerProviderBuilder()
        .add_in_memory_exporter()
        .add_instrumentation(DRIVER_INTEGRATIONS[backend.db_system])
        .add_instrumentation("sqlalchemy", **options)
        .build()
    )


@pytest.fixture
def traced(backend):
    """Yield ``(engine, spans)``: an engine created while the backend driver and SQLAlchemy are instrumented"""
    session = _build(backend)
    engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
    # the first connection runs the dialect initialization queries
    with engine.connect() as conn:
        conn.execute(sqlalchemy.text("select 1"))
    session.in_memory_exporter.clear()
    try:
        yield engine, Spans(session.in_memory_exporter)
    finally:
        engine.dispose()
        session.shutdown()


def test_select(backend, traced):
    engine, spans = traced
    with engine.connect() as conn:
        assert conn.execute(sqlalchemy.text("select 1")).scalar() == 1

    # one span in each layer, the driver span under the SQLAlchemy one
    spans.assert_span_count(2)
    spans.assert_all_descend_from_root()
    root = spans.get_root_span()
    assert root.attributes[db.SYSTEM] == backend.db_system
    assert root.attributes[db.NAME] == backend.db_name
    assert root.name == backend.db_name
    assert_no_statement(root)
    assert_is_ok(root)

    child = [s for s in spans.spans if s is not root][0]
    assert child.parent.span_id == root.context.span_id
    assert child.attributes[db.SYSTEM] == backend.db_system


def test_divide_by_zero(backend, traced):
    engine, spans = traced
    with engine.connect() as conn:
        if backend.db_system == "sqlite":
            # sqlite returns NULL
            assert conn.execute(sqlalchemy.text("select 1/0")).scalar() is None
        else:
            with pytest.raises(sa_exc.DBAPIError):
                conn.execute(sqlalchemy.text("select 1/0")).fetchall()

    spans.assert_all_descend_from_root()
    root = spans.get_root_span()
    if backend.db_system == "sqlite":
        assert_is_ok(root)
    else:
        assert_is_error(root, "Divide by zero error encountered.")
        for span in spans.spans:
            assert_is_error(span, "Divide by zero error encountered.")


def test_filter(backend):
    command_filter = mock.Mock(return_value=True)
    session = _build(backend, filter=command_filter)
    engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
    try:
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
            command_filter.reset_mock()
            conn.execute(sqlalchemy.text("select 2"))

        command_filter.assert_called_once_with(PROVIDER_NAMES[backend.db_system], mock.ANY)
        descriptor = command_filter.call_args[0][1]
        assert descriptor.statement == "select 2"
        assert descriptor.db_system == backend.db_system
    finally:
        engine.dispose()
        session.shutdown()


def test_filter_rejects(backend):
    session = _build(backend, filter=lambda provider_name, descriptor: False)
    engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
    try:
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        session.in_memory_exporter.clear()
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))

        # the driver is not filtered, its span becomes a root of its own
        spans = Spans(session.in_memory_exporter)
        spans.assert_span_count(1)
        assert spans.get_root_span().attributes[db.SYSTEM] == backend.db_system
    finally:
        engine.dispose()
        session.shutdown()


@pytest.mark.parametrize("enrich", [False, True])
def test_enrich(backend, enrich):
    options = dict(enrich_with_command=_enrich) if enrich else {}
    session = _build(backend, **options)
    engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
    try:
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        session.in_memory_exporter.clear()
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))

        spans = Spans(session.in_memory_exporter)
        root = spans.get_root_span()
        if enrich:
            assert root.attributes["enriched"] == "yes"
        else:
            assert "enriched" not in root.attributes
        # enrichment is registered for SQLAlchemy only
        for span in spans.spans:
            if span is not root:
                assert "enriched" not in span.attributes
    finally:
        engine.dispose()
        session.shutdown()


@pytest.mark.parametrize("capture", [False, True])
def test_statement_capture(backend, capture):
    session = _build(backend, set_db_statement_for_text=capture)
    engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
    try:
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        session.in_memory_exporter.clear()
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))

        spans = Spans(session.in_memory_exporter)
        root = spans.get_root_span()
        if capture:
            assert root.attributes[db.STATEMENT] == "select 1"
        else:
            assert_no_statement(root)
        for span in spans.spans:
            if span is not root:
                assert_no_statement(span)
    finally:
        engine.dispose()
        session.shutdown()


def test_statement_capture_stable_convention(backend, override_global_config):
    with override_global_config(dict(OTEL_SEMCONV_STABILITY_OPT_IN="database")):
        session = _build(backend, set_db_statement_for_text=True)
        engine = sqlalchemy.create_engine(backend.get_sqlalchemy_url())
        try:
            with engine.connect() as conn:
                conn.execute(sqlalchemy.text("select 1"))
            session.in_memory_exporter.clear()
            with engine.connect() as conn:
                conn.execute(sqlalchemy.text("select 1"))

            root = Spans(session.in_memory_exporter).get_root_span()
            assert root.attributes[db.QUERY_TEXT] == "select 1"
            assert db.STATEMENT not in root.attributes
        finally:
            engine.dispose()
            session.shutdown()


def test_missing_table(backend, traced):
    engine, spans = traced
    with engine.connect() as conn:
        with pytest.raises(sa_exc.DBAPIError):
            conn.execute(sqlalchemy.text("select * from missing_table")).fetchall()

    spans.assert_all_descend_from_root()
    root = spans.get_root_span()
    assert root.status.description
    for span in spans.spans:
        assert_is_error(span, root.status.description)


def test_missing_parameter(traced):
    engine, spans = traced
    with engine.connect() as conn:
        with pytest.raises(sa_exc.StatementError):
            conn.execute(sqlalchemy.text("select :value"), {})

    # the statement never reaches the driver
    spans.assert_has_no_spans()


def test_orm(backend, traced):
    engine, spans = traced
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    try:
        with orm.Session(engine) as session:
            session.add(Player(name="wayne"))
            session.commit()
        spans.exporter.clear()

        with orm.Session(engine) as session:
            players = session.query(Player).filter_by(name="wayne").all()
        assert [p.name for p in players] == ["wayne"]

        spans.assert_span_count(2)
        spans.assert_all_descend_from_root()
        root = spans.get_root_span()
        assert root.attributes[db.SYSTEM] == backend.db_system
        assert root.attributes[db.NAME] == backend.db_name
        assert_is_ok(root)
    finally:
        Base.metadata.drop_all(engine)


def test_executemany(backend, traced):
    if backend.db_system != "sqlite":
        pytest.skip("sqlite only, the table is not dropped")
    engine, spans = traced
    with engine.begin() as conn:
        conn.execute(sqlalchemy.text("create table scores (value integer)"))
    spans.exporter.clear()

    with engine.begin() as conn:
        conn.execute(sqlalchemy.text("insert into scores (value) values (:value)"), [{"value": 1}, {"value": 2}])

    root = spans.get_root_span()
    assert root.attributes[db.BATCH] is True
    assert root.attributes[db.ROWCOUNT] == 2


class TestTraceEngine(TracerTestCase):
    def setUp(self):
        super(TestTraceEngine, self).setUp()
        self.use_tracer_provider("sqlalchemy")
        self.backend = SqliteFixture()
        self.engine = sqlalchemy.create_engine(self.backend.get_sqlalchemy_url())

    def tearDown(self):
        self.engine.dispose()
        self.backend.close()
        super(TestTraceEngine, self).tearDown()

    def test_trace_engine(self):
        trace_engine(self.engine, tags={"peer.service": "users-db"})
        assert Pin.get_from(self.engine)._config is config.sqlalchemy
        for method in ("do_execute", "do_execute_no_params", "do_executemany"):
            assert iswrapped(self.engine.dialect, method)

        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        self.reset()
        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))

        span = self.get_root_span()
        self.assert_span_count(1)
        assert span.name == "main"
        assert span.attributes[db.SYSTEM] == "sqlite"
        assert span.attributes["peer.service"] == "users-db"

    def test_trace_engine_twice(self):
        trace_engine(self.engine)
        trace_engine(self.engine)
        assert not iswrapped(self.engine.dialect.do_execute.__wrapped__)

        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        self.reset()
        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        self.assert_span_count(1)

    def test_disabled_pin(self):
        trace_engine(self.engine)
        Pin.get_from(self.engine).remove_from(self.engine)
        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        self.assert_has_no_spans()

    def test_error(self):
        trace_engine(self.engine)
        with self.engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        self.reset()

        with self.engine.connect() as conn:
            with pytest.raises(sa_exc.OperationalError):
                conn.execute(sqlalchemy.text("select * from missing_table"))

        assert_is_error(self.find_span("main"), "no such table: missing_table")


def test_provider_name():
    assert _provider_name(sqlalchemy.create_engine("sqlite://").dialect) == "sqlite+pysqlite"
    assert _provider_name(types.SimpleNamespace(name="mssql")) == "mssql"
    assert _provider_name(types.SimpleNamespace()) is None


@pytest.mark.parametrize(
    "url,expected",
    [
        ("sqlite://", "main"),
        ("sqlite:////tmp/users.db", "main"),
        ("mssql+pyodbc://sa:secret@db:1433/orders?driver=ODBC+Driver+18+for+SQL+Server", "orders"),
        ("mssql+pyodbc:///?odbc_connect=DRIVER%3D%7Bx%7D%3BSERVER%3Ddb%3BDATABASE%3Dsales", "sales"),
        ("mssql+pyodbc:///?odbc_connect=DRIVER%3D%7Bx%7D%3BSERVER%3Ddb", None),
    ],
)
def test_database_name(url, expected):
    engine = mock.Mock(url=sqlalchemy.engine.make_url(url))
    assert _database_name(engine) == expected


def test_get_version():
    assert get_version() == sqlalchemy.__version__


class TestSQLAlchemyPatch(PatchMixin):
    def tearDown(self):
        unpatch()

    def test_patch(self):
        patch()
        self.assert_wrapped(sqlalchemy.create_engine)
        self.assert_wrapped(sqlalchemy.engine.create_engine)

    def test_patch_idempotent(self):
        patch()
        patch()
        self.assert_not_double_wrapped(sqlalchemy.create_engine)

    def test_unpatch(self):
        patch()
        unpatch()
        self.assert_not_wrapped(sqlalchemy.create_engine)
        self.assert_not_wrapped(sqlalchemy.engine.create_engine)

    def test_patched_engine(self):
        patch()
        engine = sqlalchemy.create_engine("sqlite://")
        try:
            assert Pin.get_from(engine) is not None
            assert iswrapped(engine.dialect, "do_execute")
        finally:
            engine.dispose()


def test_trace_engine_on_patched_engine():
    session = TracerProviderBuilder().add_in_memory_exporter().add_instrumentation("sqlalchemy").build()
    try:
        engine = sqlalchemy.create_engine("sqlite://")
        assert iswrapped(engine.dialect, "do_execute")
        # tracing an engine the patched `create_engine` already traces adds nothing
        trace_engine(engine)
        assert not iswrapped(engine.dialect.do_execute.__wrapped__)

        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))
        session.in_memory_exporter.clear()
        with engine.connect() as conn:
            conn.execute(sqlalchemy.text("select 1"))

        spans = Spans(session.in_memory_exporter)
        spans.assert_span_count(1)
        assert spans.get_root_span().name == "main"
        engine.dispose()
    finally:
        session.shutdown()
