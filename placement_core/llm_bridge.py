from __future__ import annotations
import json, logging, random
from typing import Any, Dict, Iterable, List, Optional

from openai import OpenAIError

from .config import (
    GENERATE_AVOID_CHARS,
    GENERATE_AVOID_MAX,
    GENERATE_MAX_TOKENS,
    GENERATE_MAX_TRIES,
    GENERATE_TEMPERATURE,
)
from .errors import ItemSourceError
from .items import normalize_item
from .types import AssessmentItem
from . import llm_clients

log = logging.getLogger(__name__)

_SCHEMA = """
Return ONLY valid JSON (no prose):
{
  "subject": string,
  "course": string,
  "prompt": string,
  "choices": string[],
  "correctIndex": number,
  "explanation": string,
  "difficulty": "intro"|"easy"|"medium"|"hard"
}
""".strip()

SYSTEM_NORMAL = _SCHEMA + """
Rules:
- intro/easy: 2-3 choices; medium/hard: 3-4 choices
- Choices: <=8w each. Explanation: <=25w
- Standard curriculum only (no advanced topics)
- Math: Use LaTeX with escaped backslashes in JSON.
"""

SYSTEM_TIGHT = _SCHEMA + """
Rules:
- EXACTLY 2 choices (intro/easy), 3 choices (medium/hard)
- Explanation: <=15w
- Math: Escaped LaTeX only.
"""


def extract_balanced_object(s: str) -> Optional[str]:
    """First top-level {...} span in s, honouring JSON string escapes."""

    depth = 0
    start = -1
    in_str = False
    escaped = False
    for i, ch in enumerate(s):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start != -1:
                return s[start : i + 1]
    return None


def parse_generated(raw: str) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    try:
        out = json.loads(raw)
    except ValueError:
        span = extract_balanced_object(raw)
        if not span:
            return None
        try:
            out = json.loads(span)
        except ValueError:
            return None
    return out if isinstance(out, dict) else None


def avoid_list(excluded: Iterable[str]) -> List[str]:
    recent = [str(a) for a in list(excluded)[-GENERATE_AVOID_MAX:]]
    return [a[:GENERATE_AVOID_CHARS] for a in recent]


def user_prompt(subject: str, course: str, difficulty: str, avoid: List[str]) -> str:
    lines = [f"Subject: {subject}", f"Course: {course}", f"Difficulty: {difficulty}"]
    if avoid:
        quoted = "; ".join(f'"{a}"' for a in avoid)
        lines.append(f"Avoid reusing or closely mirroring any of these questions: {quoted}")
    lines.append("Create 1 multiple-choice question from course syllabus. Include brief explanation.")
    return "\n".join(lines)


class LLMItemGenerator:
    """Item selector backed by a chat-completions model."""

    def __init__(self, cli, model: str, rng: random.Random | None = None,
                 max_tries: int = GENERATE_MAX_TRIES):
        self.cli = cli
        self.model = model
        self.rng = rng or random.Random()
        self.max_tries = max(1, int(max_tries))

    @classmethod
    def from_config(cls, cfg: dict) -> "LLMItemGenerator":
        cli, model = llm_clients.chat_client(cfg)
        return cls(cli, model)

    def _complete(self, system: str, user: str, json_mode: bool, max_tokens: int) -> str:
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = self.cli.chat.completions.create(
                model=self.model,
                temperature=GENERATE_TEMPERATURE,
                max_tokens=max_tokens,
                messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
                **kwargs,
            )
        except OpenAIError as e:
            raise ItemSourceError(f"item generator request failed: {e}") from e
        return resp.choices[0].message.content or ""

    def _generate_raw(self, user: str, attempt: int) -> Optional[Dict[str, Any]]:
        system = SYSTEM_NORMAL if attempt == 0 else SYSTEM_TIGHT
        parsed = parse_generated(self._complete(system, user, True, GENERATE_MAX_TOKENS))
        if parsed is None:
            fallback_tokens = max(400, int(GENERATE_MAX_TOKENS * 0.75))
            parsed = parse_generated(self._complete(SYSTEM_TIGHT, user, False, fallback_tokens))
        return parsed

    def select(
        self, subject: str, course: str, difficulty: str, excluded: Iterable[str]
    ) -> Optional[AssessmentItem]:
        skip = list(excluded)
        seen = set(p.strip() for p in skip)
        user = user_prompt(subject, course, difficulty, avoid_list(skip))
        duplicates = 0
        for attempt in range(self.max_tries):
            raw = self._generate_raw(user, attempt)
            item = normalize_item(raw, subject, course, difficulty, self.rng) if raw else None
            if item is None:
                log.warning(
                    "generator produced no servable item subject=%s course=%s difficulty=%s attempt=%d",
                    subject, course, difficulty, attempt + 1,
                )
                continue
            if item.prompt.strip() in seen:
                duplicates += 1
                log.warning("generator repeated an asked prompt course=%s attempt=%d", course, attempt + 1)
                continue
            return item
        if duplicates == self.max_tries:
            return None
        raise ItemSourceError(
            f"could not generate a {difficulty} item for {subject}/{course} after {self.max_tries} tries"
        )
