from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Literal

from .config import MAX_STEPS, START_DIFFICULTY
from .errors import StateError
from .ladder import Difficulty, parse_level

EndReason = Literal["max_steps", "mistakes", "ceiling", "exhausted"]


def _req(raw: Dict[str, Any], key: str, kind: type, what: str) -> Any:
    if key not in raw:
        raise StateError(f"{what} is missing '{key}'")
    val = raw[key]
    # bool is an int subclass; keep counters and flags apart
    if kind is int and isinstance(val, bool):
        raise StateError(f"{what}.{key} must be an integer")
    if not isinstance(val, kind):
        raise StateError(f"{what}.{key} must be {kind.__name__}")
    return val


def _as_mapping(raw: object, what: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise StateError(f"{what} must be an object")
    return raw


@dataclass(frozen=True)
class SubjectRef:
    subject: str; course: str

    def to_dict(self) -> Dict[str, str]:
        return {"subject": self.subject, "course": self.course}

    @classmethod
    def from_dict(cls, raw: object) -> "SubjectRef":
        data = _as_mapping(raw, "queue entry")
        subject = _req(data, "subject", str, "queue entry").strip()
        course = _req(data, "course", str, "queue entry").strip()
        if not subject or not course:
            raise StateError("queue entry needs a non-empty subject and course")
        return cls(subject=subject, course=course)


@dataclass
class AssessmentItem:
    subject: str
    course: str
    prompt: str
    choices: List[str]
    correct_index: int
    difficulty: Difficulty
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "subject": self.subject,
            "course": self.course,
            "prompt": self.prompt,
            "choices": list(self.choices),
            "correctIndex": self.correct_index,
            "difficulty": self.difficulty,
        }
        if self.explanation:
            out["explanation"] = self.explanation
        return out

    @classmethod
    def from_dict(cls, raw: object) -> "AssessmentItem":
        data = _as_mapping(raw, "item")
        choices = _req(data, "choices", list, "item")
        if len(choices) < 2 or not all(isinstance(c, str) for c in choices):
            raise StateError("item.choices must hold at least two strings")
        correct = _req(data, "correctIndex", int, "item")
        if not 0 <= correct < len(choices):
            raise StateError("item.correctIndex is out of range")
        explanation = data.get("explanation")
        return cls(
            subject=_req(data, "subject", str, "item"),
            course=_req(data, "course", str, "item"),
            prompt=_req(data, "prompt", str, "item"),
            choices=list(choices),
            correct_index=correct,
            difficulty=parse_level(data.get("difficulty")),
            explanation=explanation if isinstance(explanation, str) else None,
        )


@dataclass
class AssessmentState:
    subject: str
    course: str
    difficulty: Difficulty = START_DIFFICULTY  # type: ignore[assignment]
    step: int = 1
    max_steps: int = MAX_STEPS
    correct_streak: int = 0
    mistakes: int = 0
    done: bool = False
    asked: List[str] = field(default_factory=list)
    remaining: List[SubjectRef] = field(default_factory=list)
    mistake_levels: List[Difficulty] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.done and not self.remaining

    def copy(self) -> "AssessmentState":
        return replace(
            self,
            asked=list(self.asked),
            remaining=list(self.remaining),
            mistake_levels=list(self.mistake_levels),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire form; field names follow the client contract."""

        return {
            "subject": self.subject,
            "course": self.course,
            "difficulty": self.difficulty,
            "step": self.step,
            "maxSteps": self.max_steps,
            "correctStreak": self.correct_streak,
            "mistakes": self.mistakes,
            "done": self.done,
            "asked": list(self.asked),
            "remaining": [r.to_dict() for r in self.remaining],
            "mistakeLevels": list(self.mistake_levels),
        }

    @classmethod
    def from_dict(cls, raw: object) -> "AssessmentState":
        data = _as_mapping(raw, "state")
        asked = data.get("asked", [])
        if not isinstance(asked, list) or not all(isinstance(p, str) for p in asked):
            raise StateError("state.asked must be a list of prompts")
        remaining = data.get("remaining", [])
        if not isinstance(remaining, list):
            raise StateError("state.remaining must be a list")
        levels = data.get("mistakeLevels", [])
        if not isinstance(levels, list):
            raise StateError("state.mistakeLevels must be a list")
        max_steps = data.get("maxSteps", MAX_STEPS)
        if not isinstance(max_steps, int) or isinstance(max_steps, bool):
            raise StateError("state.maxSteps must be an integer")
        return cls(
            subject=_req(data, "subject", str, "state"),
            course=_req(data, "course", str, "state"),
            difficulty=parse_level(data.get("difficulty")),
            step=_req(data, "step", int, "state"),
            max_steps=max_steps,
            correct_streak=_req(data, "correctStreak", int, "state"),
            mistakes=_req(data, "mistakes", int, "state"),
            done=_req(data, "done", bool, "state"),
            asked=list(asked),
            remaining=[SubjectRef.from_dict(r) for r in remaining],
            mistake_levels=[parse_level(lvl) for lvl in levels],
        )


@dataclass
class TurnEvent:
    subject: str
    course: str
    step: int
    difficulty: Difficulty
    next_difficulty: Difficulty
    correct: Optional[bool] = None
    subject_done: bool = False
    reason: Optional[EndReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "course": self.course,
            "step": self.step,
            "difficulty": self.difficulty,
            "nextDifficulty": self.next_difficulty,
            "correct": self.correct,
            "subjectDone": self.subject_done,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, raw: object) -> "TurnEvent":
        data = _as_mapping(raw, "event")
        correct = data.get("correct")
        if correct is not None and not isinstance(correct, bool):
            raise StateError("event.correct must be a boolean or null")
        reason = data.get("reason")
        if reason not in (None, "max_steps", "mistakes", "ceiling", "exhausted"):
            raise StateError(f"unknown event.reason: {reason!r}")
        subject_done = data.get("subjectDone", False)
        if not isinstance(subject_done, bool):
            raise StateError("event.subjectDone must be a boolean")
        return cls(
            subject=_req(data, "subject", str, "event"),
            course=_req(data, "course", str, "event"),
            step=_req(data, "step", int, "event"),
            difficulty=parse_level(data.get("difficulty")),
            next_difficulty=parse_level(data.get("nextDifficulty")),
            correct=correct,
            subject_done=subject_done,
            reason=reason,
        )


@dataclass
class SubjectResult:
    subject: str
    course: str
    calibrated_difficulty: Difficulty
    correct: int = 0
    total: int = 0
    mastery: int = 50

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "course": self.course,
            "calibratedDifficulty": self.calibrated_difficulty,
            "correct": self.correct,
            "total": self.total,
            "mastery": self.mastery,
        }


@dataclass
class TurnOutcome:
    state: AssessmentState
    item: Optional[AssessmentItem]
    events: List[TurnEvent] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.state.complete

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "item": self.item.to_dict() if self.item else None,
            "events": [e.to_dict() for e in self.events],
            "complete": self.complete,
        }
