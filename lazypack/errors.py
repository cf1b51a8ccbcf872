"""
Base exception for lazypack.

Each module defines the concrete errors it raises; they all derive from
LazyPackError so callers can catch the whole family at once.
"""


class LazyPackError(Exception):
    """Base exception for all lazypack errors."""

    pass
