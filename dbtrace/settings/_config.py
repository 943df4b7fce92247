from copy import copy
from typing import Any  # noqa:F401
from typing import Dict  # noqa:F401

from envier import En

from ..internal.logger import get_logger
from .integration import IntegrationConfig


log = get_logger(__name__)


# Integrations that can be configured through ``config.<name>``
INTEGRATION_CONFIGS = frozenset(
    [
        "dbapi",
        "dbapi_async",
        "sqlite3",
        "pyodbc",
        "sqlalchemy",
    ]
)

SEMCONV_LEGACY = "legacy"
SEMCONV_STABLE = "stable"


class TraceConfig(En):
    __prefix__ = "dbtrace_trace"

    enabled = En.v(
        bool,
        "enabled",
        default=True,
        help="Master switch for every database instrumentation",
    )


def _derive_database_convention(c):
    # type: (SemconvConfig) -> str
    opt_ins = [v.strip() for v in c.stability_opt_in.split(",")]
    if "database" in opt_ins or "database/dup" in opt_ins:
        return SEMCONV_STABLE
    return SEMCONV_LEGACY


class SemconvConfig(En):
    __prefix__ = "otel_semconv"

    stability_opt_in = En.v(
        str,
        "stability_opt_in",
        default="",
        help="Comma separated OpenTelemetry semantic convention opt-ins. "
        "``database`` or ``database/dup`` selects ``db.query.text`` over ``db.statement``",
    )

    database = En.d(str, _derive_database_convention)


class Config(object):
    """Configuration object that exposes an API to set and retrieve
    global settings for each integration. All integrations must use
    this instance to register their defaults, so that they're public
    available and can be updated by users.
    """

    def __init__(self):
        self._integration_configs = {}  # type: Dict[str, IntegrationConfig]
        self._reset()

    def _reset(self):
        # type: () -> None
        trace_config = TraceConfig()
        semconv_config = SemconvConfig()
        self._tracing_enabled = trace_config.enabled
        self._semconv_database = semconv_config.database

    def __getattr__(self, name):
        # type: (str) -> Any
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._integration_configs:
            return self._integration_configs[name]
        elif name in INTEGRATION_CONFIGS:
            # Allows for accessing integration configs before an integration is patched
            self._integration_configs[name] = IntegrationConfig(self, name)
            return self._integration_configs[name]
        raise AttributeError(f"{type(self)} object has no attribute {name}, {name} is not a valid configuration")

    def _add(self, integration, settings, merge=True):
        # type: (str, Dict[str, Any], bool) -> None
        """Internal API that registers an integration with given default
        settings.

        :param str integration: The integration name (i.e. `sqlite3`)
        :param dict settings: A dictionary that contains integration settings;
            to preserve immutability of these values, the dictionary is copied
            since it contains integration defaults.
        :param bool merge: Whether to merge any existing settings with those provided,
            or if we should overwrite the settings with those provided;
            Note: when merging existing settings take precedence.
        """
        if integration not in INTEGRATION_CONFIGS:
            log.error(
                "%s not found in INTEGRATION_CONFIGS, the following settings will be ignored: %s", integration, settings
            )
            return

        existing = getattr(self, integration)
        settings = copy(settings)

        if merge:
            # DEV: `existing` wins over the defaults being registered
            #
            # >>> config.sqlite3['trace_fetch_methods'] = True
            # >>> config._add('sqlite3', dict(trace_fetch_methods=False))
            # >>> config.sqlite3['trace_fetch_methods']
            # True
            settings.update(existing)
        self._integration_configs[integration] = IntegrationConfig(self, integration, settings)

    def __repr__(self):
        cls = self.__class__
        integrations = ", ".join(self._integration_configs.keys())
        return "{}.{}({})".format(cls.__module__, cls.__name__, integrations)


config = Config()
