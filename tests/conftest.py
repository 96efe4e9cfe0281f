from __future__ import annotations

from typing import Iterable, Optional

import pytest

from placement_core.config import LEVELS
from placement_core.types import AssessmentItem


DEFAULT_COURSES: tuple[tuple[str, str], ...] = (
    ("Math", "Algebra 1"),
    ("Biology", "Bio1"),
    ("Chemistry", "Chemistry 1"),
)


def build_synthetic_bank(
    *,
    courses: Iterable[tuple[str, str]] | None = None,
    per_level: int = 8,
    levels: Iterable[str] | None = None,
) -> list[AssessmentItem]:
    """Create a deterministic synthetic bank for tests and smoke runs."""

    items: list[AssessmentItem] = []
    for subject, course in courses or DEFAULT_COURSES:
        for level in levels or LEVELS:
            for idx in range(per_level):
                items.append(
                    AssessmentItem(
                        subject=subject,
                        course=course,
                        prompt=f"{course} {level} #{idx}",
                        choices=["A", "B", "C"],
                        correct_index=0,
                        difficulty=level,  # type: ignore[arg-type]
                        explanation=f"{course} {level} explanation",
                    )
                )
    return items


def make_item(
    subject: str = "Math",
    course: str = "Algebra 1",
    difficulty: str = "intro",
    prompt: str = "q",
    correct_index: int = 0,
) -> AssessmentItem:
    return AssessmentItem(
        subject=subject,
        course=course,
        prompt=prompt,
        choices=["A", "B", "C"],
        correct_index=correct_index,
        difficulty=difficulty,  # type: ignore[arg-type]
    )


class EmptySelector:
    """Selector with nothing left at any level."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str, tuple[str, ...]]] = []

    def select(self, subject, course, difficulty, excluded) -> Optional[AssessmentItem]:
        self.calls.append((subject, course, difficulty, tuple(excluded)))
        return None


@pytest.fixture
def synthetic_bank() -> list[AssessmentItem]:
    return build_synthetic_bank()
