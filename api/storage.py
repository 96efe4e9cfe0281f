"""Utility helpers for persisting placement profiles and results.

The production deployment should swap this module for a database-backed
implementation.  For now we use simple JSON files stored on disk so the
placement API keeps no state in process memory.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
RESULTS_DIR = DATA_ROOT / "results"
RESULT_INDEX_PATH = DATA_ROOT / "results_index.json"
PROFILES_PATH = DATA_ROOT / "profiles.json"
SUBJECT_STATES_PATH = DATA_ROOT / "subject_states.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_ROOT.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---- Profiles ----
def save_profile(user_id: str, interests: List[Dict[str, str]]) -> Dict[str, Any]:
    """Store the interest queue and flag the learner for placement."""

    with _LOCK:
        profiles: Dict[str, Dict[str, Any]] = _read_json(PROFILES_PATH, {})
        profile = dict(profiles.get(user_id) or {})
        profile.update({
            "userId": user_id,
            "interests": list(interests),
            "needsPlacement": True,
            "updatedAt": utcnow_iso(),
        })
        profiles[user_id] = profile
        _write_json(PROFILES_PATH, profiles)
    return profile


def load_profile(user_id: str) -> Optional[Dict[str, Any]]:
    profiles: Dict[str, Dict[str, Any]] = _read_json(PROFILES_PATH, {})
    return profiles.get(user_id)


def clear_placement_flag(user_id: str) -> bool:
    with _LOCK:
        profiles: Dict[str, Dict[str, Any]] = _read_json(PROFILES_PATH, {})
        if user_id not in profiles:
            return False
        profiles[user_id]["needsPlacement"] = False
        profiles[user_id]["updatedAt"] = utcnow_iso()
        _write_json(PROFILES_PATH, profiles)
    return True


# ---- Per-course difficulty records ----
def upsert_subject_state(user_id: str, record: Dict[str, Any]) -> None:
    """Insert or replace the record keyed by (user, course)."""

    with _LOCK:
        states: Dict[str, Dict[str, Dict[str, Any]]] = _read_json(SUBJECT_STATES_PATH, {})
        per_user = states.setdefault(user_id, {})
        row = dict(record)
        row["updatedAt"] = utcnow_iso()
        per_user[str(record["course"])] = row
        _write_json(SUBJECT_STATES_PATH, states)


def subject_states_for_user(user_id: str) -> List[Dict[str, Any]]:
    states: Dict[str, Dict[str, Dict[str, Any]]] = _read_json(SUBJECT_STATES_PATH, {})
    out = list((states.get(user_id) or {}).values())
    out.sort(key=lambda r: r.get("updatedAt", ""), reverse=True)
    return out


def completed_courses(user_id: str) -> List[str]:
    states: Dict[str, Dict[str, Dict[str, Any]]] = _read_json(SUBJECT_STATES_PATH, {})
    return list((states.get(user_id) or {}).keys())


# ---- Placement results ----
def save_result(result_id: str, result: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist the placement result JSON and its index metadata."""

    _ensure_dirs()
    result_path = RESULTS_DIR / f"{result_id}.json"

    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        index[result_id] = metadata
        _write_json(RESULT_INDEX_PATH, index)

    _write_json(result_path, result)


def load_result(result_id: str) -> Optional[Dict[str, Any]]:
    path = RESULTS_DIR / f"{result_id}.json"
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        return None


def list_results_for_user(user_id: str) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for rid, meta in index.items():
        if meta.get("userId") == user_id:
            item = {"id": rid}
            item.update({k: v for k, v in meta.items() if k != "id"})
            out.append(item)
    out.sort(key=lambda r: r.get("createdAt", ""), reverse=True)
    return out
