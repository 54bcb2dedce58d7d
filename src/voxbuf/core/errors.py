"""Error types raised by voxbuf.

All of them are ``ValueError`` subclasses: every failure is a programming or
data error, none is transient.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Unsupported layout or parameters (component count, axis, kernel size)."""


class AppendError(ValueError):
    """A slice or frame cannot be appended to an image."""


class MissingContextError(ValueError):
    """An operation lacks the positional or load context it needs."""
