import contextlib
import os
from typing import List  # noqa:F401
from typing import Sequence  # noqa:F401
import unittest

from opentelemetry.sdk.trace import ReadableSpan  # noqa:F401
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.trace import StatusCode

from dbtrace import config as dbtrace_config
from dbtrace._trace import nesting
from dbtrace._trace.exporter import InMemorySpanExporter
from dbtrace.ext import db


@contextlib.contextmanager
def override_env(env, replace_os_env=False):
    """
    Temporarily override ``os.environ`` with provided values::

        >>> with self.override_env(dict(DBTRACE_TRACE_ENABLED="false")):
            # Your test
    """
    # Copy the full original environment
    original = dict(os.environ)

    # We allow callers to clear out the environment to prevent leaking variables into the test
    if replace_os_env:
        os.environ.clear()

    # Update based on the passed in arguments
    os.environ.update(env)
    try:
        yield
    finally:
        # Full clear the environment out and reset back to the original
        os.environ.clear()
        os.environ.update(original)


@contextlib.contextmanager
def override_config(integration, values):
    """
    Temporarily override an integration configuration value::

        >>> with self.override_config('sqlite3', dict(set_db_statement_for_text=True)):
            # Your test
    """
    options = getattr(dbtrace_config, integration)

    original = dict((key, options.get(key)) for key in values.keys())

    options.update(values)
    try:
        yield
    finally:
        options.update(original)
        dbtrace_config._reset()


@contextlib.contextmanager
def override_global_config(env):
    """
    Temporarily override the process wide settings read from the environment::

        >>> with self.override_global_config(dict(OTEL_SEMCONV_STABILITY_OPT_IN="database")):
            # Your test
    """
    try:
        with override_env(env):
            dbtrace_config._reset()
            yield
    finally:
        dbtrace_config._reset()


class BaseTestCase(unittest.TestCase):
    """
    BaseTestCase extends ``unittest.TestCase`` to provide some useful helpers/assertions


    Example::

        from tests.utils import BaseTestCase


        class MyTestCase(BaseTestCase):
            def test_case(self):
                with self.override_config('sqlite3', dict(set_db_statement_for_text=True)):
                    pass
    """

    override_env = staticmethod(override_env)
    override_global_config = staticmethod(override_global_config)
    override_config = staticmethod(override_config)


class TestSpanContainer(object):
    """
    Helper class for a container of finished spans.

    Subclasses of this class must implement a `get_spans` method::

        def get_spans(self):
            return []

    This class provides methods and assertions over a list of spans::

        class TestCases(TracerTestCase):
            def test_spans(self):
                conn.execute("select 1")

                self.assert_has_spans()
                self.assert_span_count(2)
                self.assert_all_descend_from_root()
    """

    def get_spans(self):
        """subclass required property"""
        raise NotImplementedError

    @property
    def spans(self):
        # type: () -> Sequence[ReadableSpan]
        return self.get_spans()

    def get_root_span(self):
        # type: () -> ReadableSpan
        """
        Helper to get the root span from the list of spans in this container

        :returns: The root span if one was found, None if not, and AssertionError if multiple roots were found
        :raises: AssertionError
        """
        try:
            return nesting.canonical_span(self.spans)
        except ValueError as e:
            raise AssertionError(str(e))

    def get_root_spans(self):
        # type: () -> List[ReadableSpan]
        return nesting.root_spans(self.spans)

    def assert_span_count(self, count):
        """Assert this container has the expected number of spans"""
        assert len(self.spans) == count, "Span count {0} != {1}".format(len(self.spans), count)

    def assert_has_spans(self):
        """Assert this container has spans"""
        assert len(self.spans), "No spans found"

    def assert_has_no_spans(self):
        """Assert this container does not have any spans"""
        assert len(self.spans) == 0, "Span count {0}".format(len(self.spans))

    def assert_all_descend_from_root(self):
        """Assert there is a single root span and every other span is one of its descendants"""
        spans = self.spans
        root = self.get_root_span()
        assert root is not None, "No root span found"
        for span in spans:
            assert nesting.is_descendant(span, root, spans), "{0!r} does not descend from {1!r}".format(
                span.name, root.name
            )

    def filter_spans(self, name=None, **attributes):
        """
        Helper to filter current spans by name and attribute values.

        :returns: generator for the matched spans
        """
        for span in self.spans:
            if name is not None and span.name != name:
                continue
            if any(span.attributes.get(key) != value for key, value in attributes.items()):
                continue
            yield span

    def find_span(self, name=None, **attributes):
        """
        Find a single span matches the provided filter parameters.

        :returns: The first matching span
        """
        span = next(self.filter_spans(name, **attributes), None)
        assert span is not None, "No span found for filter {0!r} {1!r}, have {2} spans".format(
            name, attributes, len(self.spans)
        )
        return span


def assert_is_ok(span):
    """Assert that the span ended without an error status"""
    assert span.status.status_code == StatusCode.UNSET, "{0!r} has status {1!r} ({2!r})".format(
        span.name, span.status.status_code, span.status.description
    )


def assert_is_error(span, description):
    """Assert that the span ended with an error status, the given description, and no events"""
    assert span.status.status_code == StatusCode.ERROR, "{0!r} has status {1!r}".format(
        span.name, span.status.status_code
    )
    assert span.status.description == description, "{0!r} != {1!r}".format(span.status.description, description)
    assert len(span.events) == 0, "{0!r} has events {1!r}".format(span.name, [e.name for e in span.events])


def assert_no_statement(span):
    for key in db.STATEMENT_KEYS:
        assert key not in span.attributes, "{0!r} has {1}".format(span.name, key)


class TracerTestCase(TestSpanContainer, BaseTestCase):
    """
    TracerTestCase is a base test case for when you need a tracer provider exporting to memory and span assertions
    """

    def setUp(self):
        """Before each test case, setup a provider exporting to memory"""
        self.exporter = InMemorySpanExporter()
        self.tracer_provider = TracerProvider()
        self.tracer_provider.add_span_processor(SimpleSpanProcessor(self.exporter))

        super(TracerTestCase, self).setUp()

    def tearDown(self):
        """After each test case, reset and shutdown the provider"""
        super(TracerTestCase, self).tearDown()

        self.reset()
        self.tracer_provider.shutdown()

    def use_tracer_provider(self, *integrations):
        """Send the spans of the given integrations to this test case's provider until the test ends"""
        for integration in integrations:
            options = getattr(dbtrace_config, integration)
            options.tracer_provider = self.tracer_provider
            self.addCleanup(options.update, dict(tracer_provider=None))

    def get_spans(self):
        """Required subclass method for TestSpanContainer"""
        return self.exporter.get_finished_spans()

    def pop_spans(self):
        # type: () -> List[ReadableSpan]
        return self.exporter.pop()

    def reset(self):
        """Helper to reset the existing list of spans created"""
        self.exporter.clear()

    def trace(self, name):
        """Start a span as the current span, from this test case's provider"""
        return self.tracer_provider.get_tracer(__name__).start_as_current_span(name)
