"""Exception hierarchy for bloomblock.

Filter construction and lookup never raise; these errors only come from the
persistence and configuration layers.
"""

from __future__ import annotations


class FilterError(Exception):
    """Base exception for all bloomblock errors."""
    pass


class FilterBlockCorruptionError(FilterError, ValueError):
    """Raised when persisted filter block bytes are truncated or corrupted."""
    pass


class ConfigError(FilterError, ValueError):
    """Raised when a FilterConfig value is invalid."""
    pass
