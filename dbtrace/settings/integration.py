import os
from typing import Optional  # noqa:F401

from ..internal.utils.attrdict import AttrDict
from ..internal.utils.formats import asbool
from .exceptions import ConfigurationError


# Options every integration understands. Integrations may register extra
# keys of their own through ``config._add``.
POLICY_OPTIONS = ("set_db_statement_for_text", "filter", "enrich_with_command", "tracer_provider")

_CALLABLE_OPTIONS = ("filter", "enrich_with_command")

_INTERNAL_KEYS = frozenset(("global_config", "integration_name"))


class IntegrationConfig(AttrDict):
    """
    Integration specific configuration object.

    This is what you will get when you do::

        from dbtrace import config

        # This is an `IntegrationConfig`
        config.sqlite3

        # `IntegrationConfig` supports both attribute and item accessors
        config.sqlite3['set_db_statement_for_text'] = True
        config.sqlite3.set_db_statement_for_text = True

    The policy options are:

    ``set_db_statement_for_text``
        Record the statement text on the span. Defaults to the
        ``DBTRACE_<NAME>_SET_DB_STATEMENT_FOR_TEXT`` environment variable, or ``False``.
    ``filter``
        ``filter(provider_name, descriptor) -> bool``. Returning ``False``
        suppresses the span of that command.
    ``enrich_with_command``
        ``enrich_with_command(span, descriptor)``. Called before a successful
        command span ends, to add attributes.
    ``tracer_provider``
        The ``TracerProvider`` spans are created from. Defaults to the global one.
    """

    def __init__(self, global_config, name, *args, **kwargs):
        """
        :param global_config:
        :type global_config: Config
        :param name: the integration name, i.e. ``sqlite3``
        :type name: str
        """
        super(IntegrationConfig, self).__init__(*args, **kwargs)

        # DEV: attributes double as items, iteration and membership hide these two from the option names
        object.__setattr__(self, "global_config", global_config)
        object.__setattr__(self, "integration_name", name)

        self.setdefault(
            "set_db_statement_for_text",
            asbool(os.getenv("DBTRACE_%s_SET_DB_STATEMENT_FOR_TEXT" % name.upper(), default=False)),
        )
        self.setdefault("filter", None)
        self.setdefault("enrich_with_command", None)
        self.setdefault("tracer_provider", None)

    def setdefault(self, key, value):
        if key not in self.__dict__:
            self.__dict__[key] = value
        return self.__dict__[key]

    def update(self, *args, **kwargs):
        self.__dict__.update(*args, **kwargs)

    def __contains__(self, key):
        return key in self.__dict__ and key not in _INTERNAL_KEYS

    def __iter__(self):
        return (key for key in self.__dict__ if key not in _INTERNAL_KEYS)

    def __len__(self):
        return len(self.__dict__) - len(_INTERNAL_KEYS)

    def validate(self):
        # type: () -> None
        """Fail fast on hooks that cannot be called."""
        for option in _CALLABLE_OPTIONS:
            value = self.get(option)
            if value is not None and not callable(value):
                raise ConfigurationError(
                    "%s.%s must be callable, got %r" % (self.integration_name, option, type(value).__name__)
                )

    def __repr__(self):
        cls = self.__class__
        keys = ", ".join(self.keys())
        return "{}.{}({})".format(cls.__module__, cls.__name__, keys)

    def copy(self):
        new_instance = self.__class__(self.global_config, self.integration_name)
        new_instance.update(self)
        return new_instance
