from __future__ import annotations
from typing import Optional
from .errors import StateError
from .ladder import parse_level
from .types import AssessmentItem, AssessmentState


def validate_state(st: AssessmentState) -> AssessmentState:
    """Reject corrupt state instead of repairing it."""

    if not st.subject.strip() or not st.course.strip():
        raise StateError("state needs a non-empty subject and course")
    parse_level(st.difficulty)
    if st.max_steps < 1:
        raise StateError("state.maxSteps must be at least 1")
    if not 1 <= st.step <= st.max_steps:
        raise StateError(f"state.step {st.step} is outside 1..{st.max_steps}")
    if st.correct_streak < 0 or st.mistakes < 0:
        raise StateError("state counters must be non-negative")
    if len(st.mistake_levels) > st.mistakes:
        raise StateError("state.mistakeLevels has more entries than mistakes")
    for lvl in st.mistake_levels:
        parse_level(lvl)
    if st.done and st.remaining:
        raise StateError("state is done but the subject queue was not advanced")
    if len(set(st.asked)) != len(st.asked):
        raise StateError("state.asked holds duplicate prompts")
    return st


def validate_answer(answer: object, item: AssessmentItem) -> int:
    # bool is an int subclass; True must not pass as index 1
    if isinstance(answer, bool) or not isinstance(answer, int):
        raise StateError("lastAnswer must be an integer choice index")
    if not 0 <= answer < len(item.choices):
        raise StateError(f"lastAnswer {answer} is out of range for {len(item.choices)} choices")
    return answer


def validate_turn_item(st: AssessmentState, item: Optional[AssessmentItem]) -> None:
    if item is None:
        return
    if item.subject != st.subject or item.course != st.course:
        raise StateError(
            f"lastItem targets {item.subject}/{item.course}, state is on {st.subject}/{st.course}"
        )
