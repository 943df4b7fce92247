"""
Tracer provider setup.

Registrations are chained and applied together by :meth:`TracerProviderBuilder.build`::

    exporter = InMemorySpanExporter()
    session = (
        TracerProviderBuilder()
        .add_in_memory_exporter(exporter)
        .add_instrumentation("sqlite3", set_db_statement_for_text=True)
        .add_instrumentation("sqlalchemy", configure=lambda options: options.update(filter=only_selects))
        .build()
    )

    with session:
        ...

Configuration mistakes (an unknown integration, an unknown option, a hook
that is not callable) raise when they are registered, before anything is
patched.
"""
from typing import Any  # noqa:F401
from typing import Callable  # noqa:F401
from typing import Dict  # noqa:F401
from typing import List  # noqa:F401
from typing import Optional  # noqa:F401

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export import SpanExporter  # noqa:F401

from . import _monkey
from ._trace.exporter import InMemorySpanExporter
from .internal.logger import get_logger
from .settings._config import INTEGRATION_CONFIGS
from .settings._config import config
from .settings.exceptions import ConfigurationError
from .settings.integration import POLICY_OPTIONS


log = get_logger(__name__)

# Options the connection wrappers understand on top of the policy options
CONNECTION_OPTIONS = ("trace_fetch_methods", "trace_connection_methods")

KNOWN_OPTIONS = frozenset(POLICY_OPTIONS + CONNECTION_OPTIONS)


class InstrumentationOptions(dict):
    """Options of one instrumentation registration.

    Only the known option names can be set::

        >>> options = InstrumentationOptions("sqlite3")
        >>> options["set_db_statement_for_text"] = True
        >>> options["capture_text"] = True
        Traceback (most recent call last):
        ...
        ConfigurationError: unknown option 'capture_text' for sqlite3
    """

    def __init__(self, integration, **options):
        # type: (str, Any) -> None
        super(InstrumentationOptions, self).__init__()
        self.integration = integration
        self.update(options)

    def __setitem__(self, key, value):
        # type: (str, Any) -> None
        if key not in KNOWN_OPTIONS:
            raise ConfigurationError("unknown option %r for %s" % (key, self.integration))
        super(InstrumentationOptions, self).__setitem__(key, value)

    def update(self, *args, **kwargs):
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def setdefault(self, key, value=None):
        if key not in self:
            self[key] = value
        return self[key]


class TracerProviderBuilder(object):
    """Collects exporters and instrumentations to set up a :class:`TracingSession`.

    :param resource: the OpenTelemetry ``Resource`` of the provider
    """

    def __init__(self, resource=None):
        # type: (Optional[Resource]) -> None
        self._resource = resource
        self._exporters = []  # type: List[Any]
        self._instrumentations = {}  # type: Dict[str, InstrumentationOptions]

    def add_exporter(self, exporter, batch=False):
        # type: (SpanExporter, bool) -> TracerProviderBuilder
        """Export finished spans to ``exporter``, as they end or in batches."""
        self._exporters.append((exporter, batch))
        return self

    def add_in_memory_exporter(self, exporter=None):
        # type: (Optional[InMemorySpanExporter]) -> TracerProviderBuilder
        return self.add_exporter(exporter if exporter is not None else InMemorySpanExporter())

    def add_instrumentation(self, name, configure=None, **options):
        # type: (str, Optional[Callable[[InstrumentationOptions], None]], Any) -> TracerProviderBuilder
        """Instrument the integration ``name`` with the given options.

        :param configure: called with the options of the registration, to set them in code
        :raises ModuleNotFoundException: when ``name`` is not a known integration
        :raises ConfigurationError: for unknown options or hooks that are not callable
        """
        if name not in INTEGRATION_CONFIGS:
            raise _monkey.ModuleNotFoundException("%s does not have instrumentation" % name)

        registration = self._instrumentations.get(name)
        if registration is None:
            registration = self._instrumentations[name] = InstrumentationOptions(name)
        registration.update(options)
        if configure is not None:
            configure(registration)

        for option in ("filter", "enrich_with_command"):
            hook = registration.get(option)
            if hook is not None and not callable(hook):
                raise ConfigurationError("%s.%s must be callable, got %r" % (name, option, type(hook).__name__))
        return self

    def build(self):
        # type: () -> TracingSession
        """Create the provider, apply the configuration and patch the registered integrations.

        The session exposes the first in-memory exporter added, batched or not, as ``in_memory_exporter``.
        """
        provider = TracerProvider(resource=self._resource) if self._resource is not None else TracerProvider()
        in_memory_exporter = None
        for exporter, batch in self._exporters:
            processor = BatchSpanProcessor(exporter) if batch else SimpleSpanProcessor(exporter)
            provider.add_span_processor(processor)
            if in_memory_exporter is None and isinstance(exporter, InMemorySpanExporter):
                in_memory_exporter = exporter

        session = TracingSession(provider, dict(self._instrumentations), in_memory_exporter)
        session.start()
        return session


class TracingSession(object):
    """A configured provider and the integrations it instruments.

    Leaving the session, or calling :meth:`shutdown`, unpatches the
    integrations, puts their configuration back and shuts the provider down.
    """

    def __init__(self, provider, instrumentations, in_memory_exporter=None):
        # type: (TracerProvider, Dict[str, InstrumentationOptions], Optional[InMemorySpanExporter]) -> None
        self.provider = provider
        self.in_memory_exporter = in_memory_exporter
        self._instrumentations = instrumentations
        self._saved = {}  # type: Dict[str, Dict[str, Any]]
        self._started = False

    def start(self):
        # type: () -> None
        if self._started:
            return
        for name, options in self._instrumentations.items():
            integration_config = getattr(config, name)
            self._saved[name] = dict(integration_config)
            integration_config.update(options)
            integration_config["tracer_provider"] = self.provider
            integration_config.validate()

        patchable = {name: True for name in self._instrumentations if _monkey.is_integration(name)}
        _monkey.patch(raise_errors=True, **patchable)
        self._started = True
        log.debug("tracing session started for %s", ", ".join(self._instrumentations))

    def shutdown(self):
        # type: () -> None
        if not self._started:
            return
        self._started = False
        try:
            _monkey.unpatch(**{name: True for name in self._instrumentations if _monkey.is_integration(name)})
        finally:
            for name, saved in self._saved.items():
                integration_config = getattr(config, name)
                # only the options this session set are put back, defaults registered since then stay
                for key in set(self._instrumentations[name]) | {"tracer_provider"}:
                    if key in saved:
                        integration_config[key] = saved[key]
                    elif key in integration_config:
                        delattr(integration_config, key)
            self._saved.clear()
            self.provider.shutdown()
        log.debug("tracing session shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
