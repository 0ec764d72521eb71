"""
Exception types raised by the streaming community detection package.

Malformed input lines are never an error: readers skip them. I/O failures
are left to propagate as the built-in ``OSError`` subclasses.
"""


class StreamCDError(Exception):
    """Base class for all package errors."""


class InvalidConfigurationError(StreamCDError, ValueError):
    """An algorithm was configured in a way that cannot run.

    Raised before any edge is streamed, e.g. when more seeds are requested
    than a ground-truth community has members.
    """


class UnknownUpdateRuleError(InvalidConfigurationError):
    """The requested CoEuS update rule does not exist."""
