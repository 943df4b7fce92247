from ._monkey import patch  # noqa: E402
from ._monkey import patch_all  # noqa: E402
from ._monkey import unpatch  # noqa: E402
from ._trace.exporter import InMemorySpanExporter  # noqa: E402
from ._trace.pin import Pin  # noqa: E402
from .provider import TracerProviderBuilder  # noqa: E402
from .settings._config import config
from .version import __version__


__all__ = [
    "patch",
    "patch_all",
    "unpatch",
    "Pin",
    "config",
    "InMemorySpanExporter",
    "TracerProviderBuilder",
    "__version__",
]
