from __future__ import annotations

import pytest

from placement_core.engine import transition
from placement_core.errors import StateError
from placement_core.types import AssessmentState, SubjectRef

from tests.conftest import make_item


def _state(**overrides) -> AssessmentState:
    base = dict(subject="Math", course="Algebra 1")
    base.update(overrides)
    return AssessmentState(**base)


def _answer(state: AssessmentState, correct: bool) -> AssessmentState:
    item = make_item(subject=state.subject, course=state.course, difficulty=state.difficulty)
    return transition(state, item.correct_index if correct else 1, item)


def test_two_correct_at_intro_advance_to_easy():
    st = _state(difficulty="intro", step=1, correct_streak=0, mistakes=0, asked=[])
    st = _answer(st, True)
    assert st.difficulty == "intro" and st.correct_streak == 1
    st = _answer(st, True)
    assert st.difficulty == "easy"
    assert st.correct_streak == 0
    assert st.step == 3


@pytest.mark.parametrize("start,expected", [("intro", "easy"), ("easy", "medium"), ("medium", "hard")])
def test_two_consecutive_correct_strictly_advance(start, expected):
    st = _state(difficulty=start, step=2)
    st = _answer(_answer(st, True), True)
    assert st.difficulty == expected


def test_two_correct_at_hard_reach_the_ceiling():
    st = _state(difficulty="hard", step=2)
    st = _answer(st, True)
    assert not st.done
    st = _answer(st, True)
    assert st.difficulty == "hard"
    assert st.correct_streak == 2
    assert st.done


def test_third_mistake_ends_the_subject():
    st = _state(difficulty="medium", mistakes=2, step=4)
    st = _answer(st, False)
    assert st.mistakes == 3
    assert st.done is True


def test_three_mistakes_force_done_regardless_of_streak():
    st = _state(difficulty="easy", mistakes=2, correct_streak=1, step=3, mistake_levels=["intro", "intro"])
    st = _answer(st, False)
    assert st.done and st.correct_streak == 0


def test_second_mistake_at_level_demotes_once():
    st = _state(difficulty="medium", step=2)
    st = _answer(st, False)
    assert st.difficulty == "medium"
    assert st.mistake_levels == ["medium"]
    st = _answer(st, False)
    assert st.difficulty == "easy", "second miss at medium should drop one rung"
    assert st.mistakes == 2


def test_miss_below_current_level_does_not_count_toward_demotion():
    st = _state(difficulty="medium", step=3, mistakes=1, mistake_levels=["easy"])
    st = _answer(st, False)
    assert st.difficulty == "medium"


def test_final_step_forces_done_even_with_perfect_streak():
    st = _state(difficulty="easy", step=7, max_steps=7, correct_streak=1)
    st = _answer(st, True)
    assert st.done is True
    assert st.step == 7


def test_step_never_exceeds_max_steps():
    st = _state(max_steps=3)
    seen = []
    for correct in (True, False, True):
        st = _answer(st, correct)
        seen.append(st.step)
    assert max(seen) <= 3
    assert st.done


def test_done_subject_dequeues_next_and_resets():
    st = _state(
        difficulty="medium",
        step=5,
        mistakes=2,
        correct_streak=0,
        asked=["a", "b", "c", "d"],
        mistake_levels=["medium", "easy"],
        remaining=[SubjectRef("Biology", "Bio1")],
    )
    st = _answer(st, False)
    assert st.subject == "Biology" and st.course == "Bio1"
    assert st.difficulty == "intro"
    assert st.step == 1
    assert st.remaining == []
    assert st.asked == [] and st.mistake_levels == []
    assert st.mistakes == 0 and st.correct_streak == 0
    assert st.done is False


def test_last_subject_done_leaves_queue_empty_for_caller():
    st = _state(step=7, max_steps=7)
    st = _answer(st, True)
    assert st.done and st.remaining == []
    assert st.complete


def test_remaining_only_shrinks():
    queue = [SubjectRef("Biology", "Bio1"), SubjectRef("Chemistry", "Chemistry 1")]
    st = _state(max_steps=2, remaining=list(queue))
    sizes = [len(st.remaining)]
    for _ in range(6):
        if st.complete:
            break
        st = _answer(st, True)
        sizes.append(len(st.remaining))
    assert sizes == sorted(sizes, reverse=True)
    assert st.complete


def test_missing_item_does_not_score_and_pins_fresh_subject_to_step_one():
    st = _state(step=3, asked=[])
    out = transition(st, None, None)
    assert out.step == 1
    assert out.mistakes == 0 and out.correct_streak == 0

    mid = _state(step=3, asked=["x"])
    assert transition(mid, None, None).step == 3


def test_input_state_is_not_mutated():
    st = _state(asked=["p"], remaining=[SubjectRef("Biology", "Bio1")])
    snapshot = st.to_dict()
    _answer(st, False)
    assert st.to_dict() == snapshot


@pytest.mark.parametrize("answer", [-1, 3, 10, True, "0", 1.0, None])
def test_invalid_answer_index_fails_fast(answer):
    st = _state()
    with pytest.raises(StateError):
        transition(st, answer, make_item())


def test_scoring_after_completion_is_rejected():
    st = _state(done=True)
    with pytest.raises(StateError):
        transition(st, 0, make_item())


@pytest.mark.parametrize(
    "overrides",
    [
        dict(step=10, max_steps=7),
        dict(step=0),
        dict(mistakes=-4, correct_streak=-3),
        dict(mistakes=1, mistake_levels=["easy", "easy"]),
        dict(done=True, remaining=[SubjectRef("Biology", "Bio1")]),
    ],
)
def test_corrupt_state_is_rejected_not_repaired(overrides):
    st = _state(**overrides)
    with pytest.raises(StateError):
        transition(st, 0, make_item())
    with pytest.raises(StateError):
        transition(st, None, None)
