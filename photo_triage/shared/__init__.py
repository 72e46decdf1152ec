"""
Shared utilities for photo-triage.
"""

from .utils import format_percent, setup_logging

__all__ = [
    "format_percent",
    "setup_logging",
]
