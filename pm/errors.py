"""
Errors raised by pm commands.
"""


class PMError(Exception):
    """Base exception for pm errors."""

    pass
