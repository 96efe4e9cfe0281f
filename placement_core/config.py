from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


LEVELS: tuple[str, ...] = ("intro", "easy", "medium", "hard")
START_DIFFICULTY: str = "intro"

MAX_STEPS: int = 7
ADVANCE_STREAK: int = 2
DEMOTE_MISTAKES: int = 2
ABORT_MISTAKES: int = 3

MAX_CHOICES: dict[str, int] = {"intro": 3, "easy": 3, "medium": 4, "hard": 4}
MIN_CHOICES: int = 2

ITEM_SOURCE: str = "bank"   # "bank" | "llm"
GENERATE_MAX_TRIES: int = 3
GENERATE_AVOID_MAX: int = 3
GENERATE_AVOID_CHARS: int = 100
GENERATE_MAX_TOKENS: int = 1300
GENERATE_TEMPERATURE: float = 0.4

PLACEMENT_PREFETCH: bool = False
BANK_SEED: int | None = None
BANK_MIN_PER_BUCKET: int = 2

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "subject",
    "course",
    "step",
    "difficulty",
    "next_difficulty",
    "correct",
    "streak",
    "mistakes",
    "done",
)
# env overrides; unset variables keep the defaults above
MAX_STEPS = _env_int("MAX_STEPS", MAX_STEPS)
ITEM_SOURCE = _env_str("ITEM_SOURCE", ITEM_SOURCE).lower()
GENERATE_MAX_TRIES = _env_int("GENERATE_MAX_TRIES", GENERATE_MAX_TRIES)
GENERATE_MAX_TOKENS = min(1800, max(800, _env_int("GENERATE_MAX_TOKENS", GENERATE_MAX_TOKENS)))
PLACEMENT_PREFETCH = _env_bool("PLACEMENT_PREFETCH", PLACEMENT_PREFETCH)
BANK_MIN_PER_BUCKET = _env_int("BANK_MIN_PER_BUCKET", BANK_MIN_PER_BUCKET)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)
if os.getenv("BANK_SEED"):
    BANK_SEED = _env_int("BANK_SEED", 0)


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except ValueError: cfg = {}
    e = os.environ
    if e.get("ITEM_SOURCE"): cfg["ITEM_SOURCE"] = e.get("ITEM_SOURCE", "").lower()
    if e.get("LLM_BACKEND"): cfg["LLM_BACKEND"] = e.get("LLM_BACKEND")
    if e.get("OLLAMA_HOST"): cfg["OLLAMA_HOST"] = e.get("OLLAMA_HOST")
    if e.get("OLLAMA_MODEL"): cfg["OLLAMA_MODEL"] = e.get("OLLAMA_MODEL")
    if e.get("PLACEMENT_BANK_PATH"): cfg["PLACEMENT_BANK_PATH"] = e.get("PLACEMENT_BANK_PATH")
    if e.get("PLACEMENT_PREFETCH"): cfg["PLACEMENT_PREFETCH"] = _env_bool("PLACEMENT_PREFETCH", False)
    cfg.setdefault("PLACEMENT_PREFETCH", PLACEMENT_PREFETCH)
    return cfg
def get_backend(cfg: dict) -> str|None:
    b = (cfg.get("LLM_BACKEND") or "").lower().strip()
    return b if b in ("azure","ollama") else None
def item_source(cfg: dict) -> str:
    src = str(cfg.get("ITEM_SOURCE") or ITEM_SOURCE).lower().strip()
    return src if src in ("bank","llm") else "bank"
