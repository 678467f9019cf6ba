"""
Deps Error Base.

Every exception raised by the synchronization engine derives from
DepsError so front ends can report engine failures with a single handler.
"""


class DepsError(Exception):
    """Base exception for plugin dependency management errors."""

    pass
