from typing import Any  # noqa:F401
from typing import Optional  # noqa:F401

import wrapt


# wrapt 2 moved the function wrappers under `BaseObjectProxy`, beside `ObjectProxy`
PROXY_TYPES = (getattr(wrapt, "BaseObjectProxy", wrapt.ObjectProxy), wrapt.ObjectProxy, wrapt.FunctionWrapper)


class NotWrappedError(Exception):
    pass


def is_proxy(obj):
    # type: (Any) -> bool
    """Returns whether ``obj`` is a wrapt proxy or function wrapper."""
    return isinstance(obj, PROXY_TYPES)


def iswrapped(obj, attr=None):
    # type: (Any, Optional[str]) -> bool
    """Returns whether an attribute is wrapped or not."""
    if attr is not None:
        obj = getattr(obj, attr, None)
    return hasattr(obj, "__wrapped__") and is_proxy(obj)


def unwrap(obj: Any, attr: str) -> None:
    try:
        setattr(obj, attr, getattr(obj, attr).__wrapped__)
    except AttributeError:
        raise NotWrappedError("{}.{} is not wrapped".format(obj, attr))
