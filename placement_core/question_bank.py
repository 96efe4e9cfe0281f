from __future__ import annotations
import json, os, random
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .config import BANK_SEED
from .errors import ItemSourceError, StateError
from .types import AssessmentItem

DEFAULT_BANK_PATH = Path(__file__).with_name("data") / "bank.json"


class ItemSelector(Protocol):
    def select(
        self, subject: str, course: str, difficulty: str, excluded: Iterable[str]
    ) -> Optional[AssessmentItem]: ...


def load_bank(path: str | Path | None = None) -> List[AssessmentItem]:
    p = Path(path or os.getenv("PLACEMENT_BANK_PATH") or DEFAULT_BANK_PATH)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ItemSourceError(f"item bank not readable at {p}: {e}") from e
    except ValueError as e:
        raise ItemSourceError(f"item bank at {p} is not valid JSON: {e}") from e
    if not isinstance(raw, list):
        raise ItemSourceError(f"item bank at {p} must be a JSON list")
    try:
        return [AssessmentItem.from_dict(r) for r in raw]
    except StateError as e:
        raise ItemSourceError(f"item bank at {p} holds a malformed item: {e}") from e


class BankSelector:
    """Picks unasked bank items by (subject, course, difficulty)."""

    def __init__(self, items: List[AssessmentItem], seed: int | None = BANK_SEED):
        self.items = items
        self.rng = random.Random(seed)
        self._index: Dict[Tuple[str, str, str], List[AssessmentItem]] = {}
        for it in items:
            self._index.setdefault((it.subject, it.course, it.difficulty), []).append(it)

    def courses(self) -> List[Tuple[str, str]]:
        seen: Dict[Tuple[str, str], None] = {}
        for subject, course, _ in self._index:
            seen.setdefault((subject, course), None)
        return list(seen)

    def select(
        self, subject: str, course: str, difficulty: str, excluded: Iterable[str]
    ) -> Optional[AssessmentItem]:
        skip = set(excluded)
        candidates = [
            it for it in self._index.get((subject, course, difficulty), [])
            if it.prompt not in skip
        ]
        if not candidates:
            return None
        return self.rng.choice(candidates)
