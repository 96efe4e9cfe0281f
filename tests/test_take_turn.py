from __future__ import annotations

import pytest

from placement_core import engine as eng
from placement_core.engine import PlacementSession, build_queue, prefetch_branches, start_state, take_turn
from placement_core.errors import ItemSourceError, StateError
from placement_core.question_bank import BankSelector
from placement_core.types import AssessmentState, SubjectRef

from tests.conftest import EmptySelector, build_synthetic_bank, make_item


QUEUE = [SubjectRef("Math", "Algebra 1"), SubjectRef("Biology", "Bio1")]


def test_first_turn_initializes_from_queue_and_serves_intro_item(synthetic_bank):
    out = take_turn(None, None, None, BankSelector(synthetic_bank, seed=1), queue=QUEUE)
    st = out.state
    assert (st.subject, st.course) == ("Math", "Algebra 1")
    assert st.difficulty == "intro" and st.step == 1 and not st.done
    assert st.remaining == [SubjectRef("Biology", "Bio1")]
    assert out.item is not None and out.item.difficulty == "intro"
    assert st.asked == [out.item.prompt]
    assert out.events == []


def test_empty_queue_is_a_validation_error(synthetic_bank):
    with pytest.raises(StateError):
        take_turn(None, None, None, BankSelector(synthetic_bank), queue=[])


def test_asked_prompts_are_never_served_twice(synthetic_bank):
    selector = BankSelector(synthetic_bank, seed=3)
    out = take_turn(None, None, None, selector, queue=[QUEUE[0]])
    served = []
    while out.item is not None:
        served.append(out.item.prompt)
        out = take_turn(out.state, out.item.correct_index, out.item, selector)
    assert len(served) == len(set(served))
    assert out.complete


def test_exhausted_level_ends_subject_early():
    selector = EmptySelector()
    st = start_state([QUEUE[0]])
    out = take_turn(st, None, None, selector)
    assert out.item is None
    assert out.state.done and out.complete
    assert [e.reason for e in out.events] == ["exhausted"]
    assert selector.calls == [("Math", "Algebra 1", "intro", ())]


def test_exhausted_subject_moves_on_to_next_queued_course():
    bank = build_synthetic_bank(courses=[("Biology", "Bio1")])
    out = take_turn(None, None, None, BankSelector(bank), queue=QUEUE)
    assert out.state.subject == "Biology"
    assert out.item is not None and out.item.course == "Bio1"
    assert out.events[0].course == "Algebra 1" and out.events[0].reason == "exhausted"


def test_missing_higher_level_terminates_instead_of_serving_another_level():
    bank = build_synthetic_bank(courses=[("Math", "Algebra 1")], levels=["intro"])
    selector = BankSelector(bank)
    out = take_turn(None, None, None, selector, queue=[QUEUE[0]])
    out = take_turn(out.state, 0, out.item, selector)
    assert out.item is not None and out.item.difficulty == "intro"
    out = take_turn(out.state, 0, out.item, selector)
    assert out.item is None
    assert out.complete
    assert out.events[-1].reason == "exhausted"
    assert out.events[-1].next_difficulty == "easy"


def test_mismatched_selector_result_is_a_source_error():
    class WrongLevel:
        def select(self, subject, course, difficulty, excluded):
            return make_item(subject=subject, course=course, difficulty="hard")

    with pytest.raises(ItemSourceError):
        take_turn(None, None, None, WrongLevel(), queue=[QUEUE[0]])


def test_corrupt_state_fails_fast(synthetic_bank):
    selector = BankSelector(synthetic_bank)
    bad = AssessmentState(subject="Math", course="Algebra 1", step=9, max_steps=7)
    with pytest.raises(StateError):
        take_turn(bad, None, None, selector)

    not_advanced = AssessmentState(subject="Math", course="Algebra 1", done=True, remaining=[QUEUE[1]])
    with pytest.raises(StateError):
        take_turn(not_advanced, None, None, selector)


def test_item_for_another_course_is_rejected(synthetic_bank):
    out = take_turn(None, None, None, BankSelector(synthetic_bank), queue=QUEUE)
    with pytest.raises(StateError):
        take_turn(out.state, 0, make_item(subject="Biology", course="Bio1"), BankSelector(synthetic_bank))


def test_complete_state_without_answer_returns_no_item(synthetic_bank):
    st = AssessmentState(subject="Math", course="Algebra 1", done=True)
    out = take_turn(st, None, None, BankSelector(synthetic_bank))
    assert out.item is None and out.complete and out.events == []


def test_state_round_trips_through_wire_form(synthetic_bank):
    selector = BankSelector(synthetic_bank, seed=5)
    out = take_turn(None, None, None, selector, queue=QUEUE)
    wire = out.to_dict()
    st = AssessmentState.from_dict(wire["state"])
    assert st.to_dict() == wire["state"]
    assert set(wire["state"]) >= {
        "subject", "course", "difficulty", "step", "maxSteps", "correctStreak",
        "mistakes", "done", "asked", "remaining",
    }


def test_prefetch_branches_cover_right_and_wrong(synthetic_bank):
    selector = BankSelector(synthetic_bank, seed=2)
    out = take_turn(None, None, None, selector, queue=[QUEUE[0]])
    branches = prefetch_branches(out.state, out.item, selector)
    right, wrong = branches["right"], branches["wrong"]
    assert right.state.correct_streak == 1 and right.state.mistakes == 0
    assert wrong.state.mistakes == 1 and wrong.state.correct_streak == 0
    assert right.item.prompt != out.item.prompt
    assert out.item.prompt in right.state.asked


def test_prefetch_failure_leaves_branch_empty(synthetic_bank):
    selector = BankSelector(synthetic_bank)
    out = take_turn(None, None, None, selector, queue=[QUEUE[0]])

    class Broken:
        def select(self, *a):
            raise ItemSourceError("down")

    branches = prefetch_branches(out.state, out.item, Broken())
    assert branches == {"right": None, "wrong": None}


def test_build_queue_keeps_interest_order_and_skips_placed_courses():
    interests = [
        SubjectRef("Chemistry", "Chemistry 1"),
        SubjectRef("Math", "Algebra 1"),
        SubjectRef("Biology", "Bio1"),
        SubjectRef("Math", "Algebra 1"),
    ]
    queue = build_queue(interests, completed_courses=["Algebra 1"])
    assert queue == [SubjectRef("Chemistry", "Chemistry 1"), SubjectRef("Biology", "Bio1")]


def test_session_runs_whole_queue_and_summarizes(synthetic_bank):
    session = PlacementSession(QUEUE, BankSelector(synthetic_bank, seed=4))
    item = session.next_item()
    answered = 0
    while item is not None:
        item = session.answer_current(item.correct_index)
        answered += 1
    assert session.complete
    results = session.finalize()
    assert [r.course for r in results] == ["Algebra 1", "Bio1"]
    assert all(r.mastery == 100 for r in results)
    # all-correct runs climb one rung per two answers and reach hard on the last step
    assert all(r.calibrated_difficulty == "hard" for r in results)
    assert answered == 2 * 7


def test_make_selector_uses_bank_by_default(monkeypatch, synthetic_bank):
    monkeypatch.setattr(eng, "load_bank", lambda path=None: list(synthetic_bank))
    selector = eng.make_selector({})
    assert isinstance(selector, BankSelector)


def test_make_selector_without_backend_is_a_config_error():
    with pytest.raises(ItemSourceError):
        eng.make_selector({"ITEM_SOURCE": "llm"})
