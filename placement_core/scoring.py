from __future__ import annotations
from typing import Dict, Iterable, List, Tuple

from .types import SubjectResult, TurnEvent


def mastery_from(correct: int, total: int) -> int:
    acc = correct / total if total > 0 else 0.5
    return int(round(acc * 100))


def summarize(history: Iterable[TurnEvent]) -> List[SubjectResult]:
    """Per-subject calibration, in the order subjects were first visited.

    calibratedDifficulty is the level in effect when the sub-assessment
    ended; a subject that never ended keeps the level of its last event.
    """

    order: List[Tuple[str, str]] = []
    level: Dict[Tuple[str, str], str] = {}
    ended: Dict[Tuple[str, str], bool] = {}
    correct: Dict[Tuple[str, str], int] = {}
    total: Dict[Tuple[str, str], int] = {}

    for evt in history:
        key = (evt.subject, evt.course)
        if key not in level:
            order.append(key)
            correct[key] = 0
            total[key] = 0
            ended[key] = False
        if evt.correct is not None:
            total[key] += 1
            correct[key] += int(evt.correct)
        if not ended[key]:
            level[key] = evt.next_difficulty
        if evt.subject_done:
            ended[key] = True

    return [
        SubjectResult(
            subject=subject,
            course=course,
            calibrated_difficulty=level[(subject, course)],  # type: ignore[arg-type]
            correct=correct[(subject, course)],
            total=total[(subject, course)],
            mastery=mastery_from(correct[(subject, course)], total[(subject, course)]),
        )
        for subject, course in order
    ]
