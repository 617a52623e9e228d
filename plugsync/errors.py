"""
Exception hierarchy shared across plugsync.

Per-plugin failures are normally captured as error lists in a Result
rather than propagated; these types are raised where a stage needs to
signal a failure to the code that records it.
"""


class PlugsyncError(Exception):
    """Base exception for all plugsync errors."""

    pass


class ConfigError(PlugsyncError):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


class InstallError(PlugsyncError):
    """Raised by a backend when a plugin cannot be installed."""

    pass


class UpdateError(PlugsyncError):
    """Raised by a backend when a plugin cannot be updated."""

    pass


class MoveError(PlugsyncError):
    """Raised when a plugin directory cannot be moved between roots."""

    pass


class RemovalWarning(UserWarning):
    """Issued when a directory selected for cleaning could not be removed."""

    pass
