class ConfigurationError(ValueError):
    """Raised when an instrumentation is registered with an invalid configuration."""
