# placement_core/errors.py
from __future__ import annotations


class StateError(ValueError):
    """Invalid assessment input: corrupt state, bad answer index, wrong item."""


class ItemSourceError(RuntimeError):
    """Item bank or generator backend is unreachable or misconfigured."""
