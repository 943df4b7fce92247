from typing import Any  # noqa:F401
from typing import Dict  # noqa:F401
from typing import Optional  # noqa:F401

import wrapt

from ..internal.logger import get_logger
from .emitter import SpanEmitter


log = get_logger(__name__)


# To set attributes on wrapt proxy objects use this prefix:
# http://wrapt.readthedocs.io/en/latest/wrappers.html
_DBTRACE_PIN_NAME = "_dbtrace_pin"
_DBTRACE_PIN_PROXY_NAME = "_self_" + _DBTRACE_PIN_NAME


class Pin(object):
    """Pin (a.k.a Patch INfo) is a small class which is used to
    set tracing metadata on a particular traced connection.
    This is useful if you wanted to, say, trace two different
    database clusters.

        >>> conn = sqlite3.connect('/tmp/user.db')
        >>> # Override a pin for a specific connection
        >>> Pin.override(conn, tags={'peer.service': 'user-db'})
    """

    __slots__ = ["tags", "_target", "_config", "_initialized"]

    def __init__(
        self,
        tags=None,  # type: Optional[Dict[str, Any]]
        _config=None,  # type: Optional[Dict[str, Any]]
    ):
        # type: (...) -> None
        self.tags = tags
        self._target = None  # type: Optional[int]
        # keep the configuration attribute internal because the
        # public API to access it is not the Pin class
        self._config = _config if _config is not None else {}  # type: Dict[str, Any]
        self._initialized = True

    def __setattr__(self, name, value):
        if getattr(self, "_initialized", False) and name != "_target":
            raise AttributeError("can't mutate a pin, use override() or clone() instead")
        super(Pin, self).__setattr__(name, value)

    def __repr__(self):
        return "Pin(tags=%s, config=%s)" % (self.tags, getattr(self._config, "integration_name", None))

    def emitter(self):
        # type: () -> SpanEmitter
        return SpanEmitter(self._config, tags=self.tags)

    @staticmethod
    def get_from(obj):
        # type: (Any) -> Optional[Pin]
        """Return the pin associated with the given object. If a pin is attached to
        `obj` but the instance is not the owner of the pin, a new pin is cloned and
        attached. This ensures that a pin inherited from a class is a copy for the new
        instance, avoiding that a specific instance overrides other pins values.

            >>> pin = Pin.get_from(conn)
        """
        pin_name = _DBTRACE_PIN_PROXY_NAME if isinstance(obj, wrapt.ObjectProxy) else _DBTRACE_PIN_NAME
        pin = getattr(obj, pin_name, None)
        # detect if the PIN has been inherited from a class
        if pin is not None and pin._target != id(obj):
            pin = pin.clone()
            pin.onto(obj)
        return pin

    @classmethod
    def override(
        cls,
        obj,  # type: Any
        tags=None,  # type: Optional[Dict[str, Any]]
    ):
        # type: (...) -> None
        """Override an object with the given attributes.

        That's the recommended way to customize an already instrumented client, without
        losing existing attributes.

            >>> conn = sqlite3.connect('/tmp/user.db')
            >>> Pin.override(conn, tags={'peer.service': 'user-db'})
        """
        if not obj:
            return

        pin = cls.get_from(obj)
        if pin is None:
            pin = Pin(tags=tags)
        else:
            pin = pin.clone(tags=tags)
        pin.onto(obj)

    def enabled(self):
        # type: () -> bool
        """Return true if the integration this pin belongs to is enabled."""
        return self._config.get("enabled", True) is not False

    def onto(self, obj):
        # type: (Any) -> None
        """Patch this pin onto the given object."""
        try:
            pin_name = _DBTRACE_PIN_PROXY_NAME if isinstance(obj, wrapt.ObjectProxy) else _DBTRACE_PIN_NAME

            # set the target reference; any get_from, clones and retarget the new PIN
            self._target = id(obj)
            return setattr(obj, pin_name, self)
        except AttributeError:
            log.debug("can't pin onto object. skipping", exc_info=True)

    def remove_from(self, obj):
        # type: (Any) -> None
        try:
            pin_name = _DBTRACE_PIN_PROXY_NAME if isinstance(obj, wrapt.ObjectProxy) else _DBTRACE_PIN_NAME

            pin = Pin.get_from(obj)
            if pin is not None:
                delattr(obj, pin_name)
        except AttributeError:
            log.debug("can't remove pin from object. skipping", exc_info=True)

    def clone(
        self,
        tags=None,  # type: Optional[Dict[str, Any]]
    ):
        # type: (...) -> Pin
        """Return a clone of the pin with the given attributes replaced."""
        # do a shallow copy of Pin dicts
        if not tags and self.tags:
            tags = self.tags.copy()

        # the configuration is shared, not copied: it is the integration
        # configuration the user updates through ``dbtrace.config``
        return Pin(tags=tags, _config=self._config)
