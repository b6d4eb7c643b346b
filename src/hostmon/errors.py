"""Exception types raised by hostmon."""


class HostmonError(Exception):
    """Base class for all hostmon errors."""


class UnsupportedPlatformError(HostmonError):
    """No counter reader exists for the running operating system."""


class CounterReadError(HostmonError):
    """An OS counter source could not be read or parsed."""


class ConfigError(HostmonError, ValueError):
    """Invalid command-line or programmatic configuration."""
