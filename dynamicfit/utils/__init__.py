"""
DynamicFit utilities package.
Internal utilities - not part of public API.
"""

from . import formatters, parsers, validators, visualization

__all__ = [
    "formatters",
    "parsers",
    "validators",
    "visualization",
]
