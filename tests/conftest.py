from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
import pytest

from dbtrace import config as dbtrace_config
from dbtrace._trace.exporter import InMemorySpanExporter
from dbtrace._trace.pin import Pin
from tests import utils


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def integration_config(tracer_provider):
    """An integration configuration sending spans to ``tracer_provider``, as ``config.dbapi`` with fresh options."""
    cfg = dbtrace_config.dbapi.copy()
    cfg.update(
        dict(
            tracer_provider=tracer_provider,
            set_db_statement_for_text=False,
            filter=None,
            enrich_with_command=None,
            trace_fetch_methods=False,
            trace_connection_methods=False,
        )
    )
    return cfg


@pytest.fixture
def pin(integration_config):
    return Pin(_config=integration_config)


@pytest.fixture
def override_env():
    return utils.override_env


@pytest.fixture
def override_config():
    return utils.override_config


@pytest.fixture
def override_global_config():
    return utils.override_global_config


@pytest.fixture(autouse=True)
def _reset_global_config():
    # every test starts from the environment the process was started with
    dbtrace_config._reset()
    yield
    dbtrace_config._reset()
