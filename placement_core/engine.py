# placement_core/engine.py
from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from .types import AssessmentItem, AssessmentState, SubjectRef, SubjectResult, TurnEvent, TurnOutcome
from .errors import ItemSourceError, StateError
from .ladder import is_ceiling, level_index, next_level, prev_level
from .question_bank import BankSelector, ItemSelector, load_bank
from .scoring import summarize
from .validators import validate_answer, validate_state, validate_turn_item
from .config import (
    load_config,
    item_source,
    MAX_STEPS,
    ADVANCE_STREAK,
    DEMOTE_MISTAKES,
    ABORT_MISTAKES,
    DEBUG_TRACE,
    TRACE_FIELDS,
)


log = logging.getLogger(__name__)


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


def build_queue(
    interests: Iterable[SubjectRef], completed_courses: Iterable[str] = ()
) -> List[SubjectRef]:
    """Interest-ordered queue of courses that still need placement."""

    done = set(completed_courses)
    queue: List[SubjectRef] = []
    seen: set[str] = set()
    for ref in interests:
        if ref.course in done or ref.course in seen:
            continue
        seen.add(ref.course)
        queue.append(ref)
    return queue


def start_state(queue: List[SubjectRef], max_steps: int = MAX_STEPS) -> AssessmentState:
    if not queue:
        raise StateError("no subjects queued for placement")
    first, rest = queue[0], list(queue[1:])
    return AssessmentState(subject=first.subject, course=first.course, max_steps=max_steps, remaining=rest)


def _advance_queue(st: AssessmentState) -> AssessmentState:
    nxt = st.remaining[0]
    return AssessmentState(
        subject=nxt.subject,
        course=nxt.course,
        max_steps=st.max_steps,
        remaining=list(st.remaining[1:]),
    )


def _apply_answer(st: AssessmentState, correct: bool) -> TurnEvent:
    """Score one answer in place and run the terminal check."""

    level_before = st.difficulty
    step_before = st.step

    if correct:
        st.correct_streak += 1
        # at the ceiling the streak keeps counting toward the ceiling stop
        if st.correct_streak >= ADVANCE_STREAK and not is_ceiling(st.difficulty):
            st.difficulty = next_level(st.difficulty)
            st.correct_streak = 0
    else:
        st.mistakes += 1
        st.correct_streak = 0
        st.mistake_levels.append(st.difficulty)
        current = level_index(st.difficulty)
        at_or_above = sum(1 for lvl in st.mistake_levels if level_index(lvl) >= current)
        if at_or_above >= DEMOTE_MISTAKES:
            st.difficulty = prev_level(st.difficulty)

    budget_spent = st.step >= st.max_steps
    st.step = min(st.step + 1, st.max_steps)

    reason = None
    if budget_spent:
        reason = "max_steps"
    elif st.mistakes >= ABORT_MISTAKES:
        reason = "mistakes"
    elif is_ceiling(st.difficulty) and st.correct_streak >= ADVANCE_STREAK:
        reason = "ceiling"
    st.done = reason is not None

    log.debug(
        "placement_turn subject=%s course=%s step=%d level=%s->%s correct=%d streak=%d mistakes=%d done=%s",
        st.subject,
        st.course,
        step_before,
        level_before,
        st.difficulty,
        int(correct),
        st.correct_streak,
        st.mistakes,
        st.done,
    )
    _emit_trace(
        subject=st.subject,
        course=st.course,
        step=step_before,
        difficulty=level_before,
        next_difficulty=st.difficulty,
        correct=int(correct),
        streak=st.correct_streak,
        mistakes=st.mistakes,
        done=st.done,
    )

    return TurnEvent(
        subject=st.subject,
        course=st.course,
        step=step_before,
        difficulty=level_before,
        next_difficulty=st.difficulty,
        correct=correct,
        subject_done=st.done,
        reason=reason,  # type: ignore[arg-type]
    )


def _transition(
    state: AssessmentState,
    last_answer_index: Optional[int],
    last_item: Optional[AssessmentItem],
) -> Tuple[AssessmentState, Optional[TurnEvent]]:
    validate_state(state)
    st = state.copy()
    if last_item is None:
        if last_answer_index is not None:
            raise StateError("lastAnswer was given without lastItem")
        if not st.asked:
            st.step = 1
        return st, None

    idx = validate_answer(last_answer_index, last_item)
    if st.done:
        raise StateError("the assessment is already complete; no answer can be scored")

    event = _apply_answer(st, idx == last_item.correct_index)
    if st.done and st.remaining:
        log.info("subject complete subject=%s course=%s reason=%s", st.subject, st.course, event.reason)
        st = _advance_queue(st)
    return st, event


def transition(
    state: AssessmentState,
    last_answer_index: Optional[int],
    last_item: Optional[AssessmentItem],
) -> AssessmentState:
    """Next state after scoring the learner's answer to last_item.

    The input state is left untouched and a corrupt one raises StateError.
    When last_item is None nothing is scored; a subject with nothing asked
    yet is pinned to step 1.
    """

    st, _ = _transition(state, last_answer_index, last_item)
    return st


def take_turn(
    state: Optional[AssessmentState],
    last_answer: Optional[int],
    last_item: Optional[AssessmentItem],
    selector: ItemSelector,
    queue: Optional[List[SubjectRef]] = None,
    max_steps: int = MAX_STEPS,
) -> TurnOutcome:
    """One request/response turn: score, advance, then pick the next item."""

    if state is None:
        if last_item is not None or last_answer is not None:
            raise StateError("an answer cannot be scored without a state")
        state = start_state(list(queue or []), max_steps=max_steps)

    validate_state(state)
    validate_turn_item(state, last_item)

    st, event = _transition(state, last_answer, last_item)
    events: List[TurnEvent] = [event] if event else []

    while not st.complete:
        item = selector.select(st.subject, st.course, st.difficulty, tuple(st.asked))
        if item is not None:
            if item.difficulty != st.difficulty or item.prompt in st.asked:
                raise ItemSourceError(
                    f"selector returned a {item.difficulty} item for a {st.difficulty} request"
                    if item.difficulty != st.difficulty
                    else "selector returned an already asked prompt"
                )
            st.asked.append(item.prompt)
            return TurnOutcome(state=st, item=item, events=events)

        log.warning(
            "no %s item left subject=%s course=%s; ending sub-assessment early",
            st.difficulty, st.subject, st.course,
        )
        events.append(
            TurnEvent(
                subject=st.subject,
                course=st.course,
                step=st.step,
                difficulty=st.difficulty,
                next_difficulty=st.difficulty,
                correct=None,
                subject_done=True,
                reason="exhausted",
            )
        )
        st.done = True
        if st.remaining:
            st = _advance_queue(st)

    return TurnOutcome(state=st, item=None, events=events)


def prefetch_branches(
    state: AssessmentState, item: AssessmentItem, selector: ItemSelector
) -> Dict[str, Optional[TurnOutcome]]:
    """Precompute the turns that follow a right and a wrong answer to item."""

    wrong = 0 if item.correct_index != 0 else 1
    out: Dict[str, Optional[TurnOutcome]] = {}
    for name, idx in (("right", item.correct_index), ("wrong", wrong)):
        try:
            out[name] = take_turn(state, idx, item, selector)
        except ItemSourceError as e:
            log.warning("branch prefetch failed branch=%s course=%s: %s", name, state.course, e)
            out[name] = None
    return out


def make_selector(cfg: Optional[dict] = None) -> ItemSelector:
    cfg = load_config() if cfg is None else cfg
    if item_source(cfg) == "llm":
        from .llm_bridge import LLMItemGenerator
        return LLMItemGenerator.from_config(cfg)
    return BankSelector(load_bank(cfg.get("PLACEMENT_BANK_PATH")))


class PlacementSession:
    """In-process placement run that keeps state and history for the caller."""

    def __init__(self, queue: List[SubjectRef], selector: Optional[ItemSelector] = None,
                 max_steps: int = MAX_STEPS):
        self.queue = list(queue)
        self.selector = selector or make_selector()
        self.max_steps = max_steps
        self.state: Optional[AssessmentState] = None
        self.history: List[TurnEvent] = []
        self._current: Optional[AssessmentItem] = None
        self._started = False

    def next_item(self) -> Optional[AssessmentItem]:
        if not self._started:
            self._started = True
            self._record(take_turn(None, None, None, self.selector, queue=self.queue,
                                   max_steps=self.max_steps))
        return self._current

    def answer_current(self, index: int) -> Optional[AssessmentItem]:
        if self._current is None or self.state is None:
            return None
        self._record(take_turn(self.state, index, self._current, self.selector))
        return self._current

    def _record(self, outcome: TurnOutcome) -> None:
        self.state = outcome.state
        self._current = outcome.item
        self.history.extend(outcome.events)

    @property
    def complete(self) -> bool:
        return self.state is not None and self.state.complete

    def finalize(self) -> List[SubjectResult]:
        return summarize(self.history)
