from .exceptions import ConfigurationError
from .integration import IntegrationConfig


__all__ = ["ConfigurationError", "IntegrationConfig"]
