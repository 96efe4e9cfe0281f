# placement_core/ladder.py
from __future__ import annotations
from typing import Literal

from .config import LEVELS
from .errors import StateError

Difficulty = Literal["intro", "easy", "medium", "hard"]


def parse_level(value: object) -> Difficulty:
    if not isinstance(value, str) or value not in LEVELS:
        raise StateError(f"unknown difficulty level: {value!r}")
    return value  # type: ignore[return-value]


def level_index(level: str) -> int:
    return LEVELS.index(parse_level(level))


def next_level(level: str) -> Difficulty:
    idx = level_index(level)
    return LEVELS[min(idx + 1, len(LEVELS) - 1)]  # type: ignore[return-value]


def prev_level(level: str) -> Difficulty:
    idx = level_index(level)
    return LEVELS[max(idx - 1, 0)]  # type: ignore[return-value]


def is_ceiling(level: str) -> bool:
    return level_index(level) == len(LEVELS) - 1
