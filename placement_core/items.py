# placement_core/items.py
from __future__ import annotations
import random, re
from typing import Any, Dict, List, Optional

from .config import LEVELS, MAX_CHOICES, MIN_CHOICES
from .types import AssessmentItem

_BLOCKLIST = (
    re.compile(r"suicide|self[-\s]?harm", re.I),
    re.compile(r"explicit|porn|sexual", re.I),
    re.compile(r"hate\s*speech|racial\s*slur", re.I),
    re.compile(r"bomb|weapon|make\s+drugs", re.I),
)


def is_safe(text: str) -> bool:
    if not isinstance(text, str) or not text.strip():
        return False
    return not any(rx.search(text) for rx in _BLOCKLIST)


def _coerce_index(raw: object, n: int) -> int:
    try:
        idx = int(float(raw))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if idx < 0 or idx >= n:
        return 0
    return idx


def shuffle_choices(choices: List[str], correct_index: int, rng: random.Random) -> tuple[List[str], int]:
    order = list(range(len(choices)))
    rng.shuffle(order)
    shuffled = [choices[i] for i in order]
    return shuffled, order.index(correct_index)


def normalize_item(
    raw: Dict[str, Any],
    subject: str,
    course: str,
    difficulty: str,
    rng: Optional[random.Random] = None,
) -> Optional[AssessmentItem]:
    """Turn a loosely-typed generated item into a servable one.

    Returns None when the item cannot be served: missing prompt, fewer than
    two usable choices, a level other than the one requested, or a prompt
    that trips the safety blocklist.
    """

    if not isinstance(raw, dict):
        return None
    prompt = str(raw.get("prompt") or "").strip()
    if not prompt or not is_safe(prompt):
        return None

    declared = raw.get("difficulty")
    level = declared if isinstance(declared, str) and declared in LEVELS else difficulty
    if level != difficulty:
        return None

    raw_choices = raw.get("choices")
    if not isinstance(raw_choices, list):
        return None
    # keep the original position of each surviving choice for the key remap
    kept = [(i, str(c if c is not None else "").strip()) for i, c in enumerate(raw_choices)]
    kept = [(i, c) for i, c in kept if c]
    if len(kept) < MIN_CHOICES:
        return None

    key_pos = _coerce_index(raw.get("correctIndex"), len(raw_choices))
    positions = [i for i, _ in kept]
    correct = positions.index(key_pos) if key_pos in positions else 0

    cap = MAX_CHOICES.get(level, 4)
    if len(kept) > cap:
        keep = [correct] + [j for j in range(len(kept)) if j != correct][: cap - 1]
        keep.sort()
        correct = keep.index(correct)
        kept = [kept[j] for j in keep]
    choices = [c for _, c in kept]

    if rng is not None:
        choices, correct = shuffle_choices(choices, correct, rng)

    explanation = raw.get("explanation")
    return AssessmentItem(
        subject=subject,
        course=course,
        prompt=prompt,
        choices=choices,
        correct_index=correct,
        difficulty=level,  # type: ignore[arg-type]
        explanation=str(explanation).strip() if explanation else None,
    )
