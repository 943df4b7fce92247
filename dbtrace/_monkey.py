import importlib
import os
from pathlib import Path
import sys
from typing import TYPE_CHECKING  # noqa:F401
from typing import Set

from wrapt.importer import when_imported

from .internal.logger import get_logger
from .internal.utils import formats


if TYPE_CHECKING:  # pragma: no cover
    from typing import Any  # noqa:F401
    from typing import Callable  # noqa:F401


log = get_logger(__name__)

# Default set of modules to automatically patch or not
PATCH_MODULES = {
    "sqlite3": True,
    "pyodbc": True,
    "sqlalchemy": True,
}


_PATCHED_MODULES = set()  # type: Set[str]

# Module names that need to be patched for a given integration. If the module
# name coincides with the integration name, then there is no need to add an
# entry here.
_MODULES_FOR_CONTRIB = {
    "sqlalchemy": ("sqlalchemy.engine",),
}

_PATCH_MODULE_PATH = "dbtrace.contrib.internal.%s.patch"


class PatchException(Exception):
    """Wraps regular `Exception` class when patching modules"""

    pass


class ModuleNotFoundException(PatchException):
    pass


def is_integration(name):
    # type: (str) -> bool
    """Return whether ``name`` has automatic instrumentation."""
    return (Path(__file__).parent / "contrib" / "internal" / name / "patch.py").exists()


def _on_import_factory(module, path_f, raise_errors=True):
    # type: (str, str, bool) -> Callable[[Any], None]
    """Factory to create an import hook for the provided module name"""

    def on_import(hook):
        # the integration may have been unpatched before the module got imported
        if module not in _PATCHED_MODULES:
            return

        # Import and patch module
        try:
            imported_module = importlib.import_module(path_f % (module,))
            imported_module.patch()
        except Exception as e:
            if raise_errors:
                raise
            log.error(
                "failed to enable dbtrace support for %s: %s",
                module,
                str(e),
            )
        else:
            log.debug("patched %s version %s", module, imported_module.get_version())

    return on_import


def patch_all(**patch_modules):
    # type: (bool) -> None
    """Enables dbtrace library instrumentation.

    In addition to ``patch_modules``, an override can be specified via an
    environment variable, ``DBTRACE_TRACE_<module>_ENABLED`` for each module.

    ``patch_modules`` have the highest precedence for overriding.

    :param dict patch_modules: Override whether particular modules are patched or not.

        >>> patch_all(sqlalchemy=False)
    """
    modules = PATCH_MODULES.copy()

    # The enabled setting can be overridden by environment variables
    for module in modules:
        env_var = "DBTRACE_TRACE_%s_ENABLED" % module.upper()
        if env_var in os.environ:
            modules[module] = formats.asbool(os.environ[env_var])

    # Arguments take precedence over the environment and the defaults.
    modules.update(patch_modules)

    patch(raise_errors=False, **modules)


def patch(raise_errors=True, **patch_modules):
    # type: (bool, bool) -> None
    """Patch only a set of given modules.

    Modules that are not imported yet are patched when they are.

    :param bool raise_errors: Raise error if one patch fail.
    :param dict patch_modules: List of modules to patch.

        >>> patch(sqlite3=True, sqlalchemy=True)
    """
    contribs = [c for c, enabled in patch_modules.items() if enabled]
    for contrib in contribs:
        # Check if we have the requested contrib.
        if not is_integration(contrib):
            if raise_errors:
                raise ModuleNotFoundException("%s does not have automatic instrumentation" % contrib)
            log.error("%s does not have automatic instrumentation", contrib)
            continue

        # manually add module to patched modules
        _PATCHED_MODULES.add(contrib)

        for module in _MODULES_FOR_CONTRIB.get(contrib, (contrib,)):
            # Use factory to create handler to close over `module` and `raise_errors` values from this loop
            when_imported(module)(_on_import_factory(contrib, _PATCH_MODULE_PATH, raise_errors=raise_errors))

    log.info(
        "Configured dbtrace instrumentation for %s integration(s). The following modules have been patched: %s",
        len(contribs),
        ",".join(contribs),
    )


def unpatch(**unpatch_modules):
    # type: (bool) -> None
    """Remove the instrumentation of a set of modules.

        >>> unpatch(sqlite3=True)
    """
    for contrib, enabled in unpatch_modules.items():
        if not enabled:
            continue
        if not is_integration(contrib):
            raise ModuleNotFoundException("%s does not have automatic instrumentation" % contrib)
        _PATCHED_MODULES.discard(contrib)

        # the patch module imports the instrumented library, leave it alone if the application never did
        if not any(module in sys.modules for module in _MODULES_FOR_CONTRIB.get(contrib, (contrib,))):
            continue
        importlib.import_module(_PATCH_MODULE_PATH % contrib).unpatch()
        log.debug("unpatched %s", contrib)


def _get_patched_modules():
    # type: () -> Set[str]
    """Get the list of patched modules"""
    return _PATCHED_MODULES
