"""Exception hierarchy shared across gitterm."""

from __future__ import annotations


class GittermError(Exception):
    """Base exception for all gitterm errors."""
