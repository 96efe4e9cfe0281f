from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Iterable

from . import config
from .question_bank import load_bank
from .types import AssessmentItem

DEFAULT_SUMMARY_PATH = Path(tempfile.gettempdir()) / "placement_bank_audit.json"


def _blank_course() -> dict[str, object]:
    return {"levels": {lvl: 0 for lvl in config.LEVELS}, "missing_explanation": 0}


def audit_items(items: Iterable[AssessmentItem]) -> dict[str, object]:
    coverage: dict[str, dict[str, object]] = {}
    totals: dict[str, int] = {lvl: 0 for lvl in config.LEVELS}
    prompts: dict[str, int] = {}

    for item in items:
        key = f"{item.subject}/{item.course}"
        course_data = coverage.setdefault(key, _blank_course())
        levels: dict[str, int] = course_data["levels"]  # type: ignore[assignment]
        levels[item.difficulty] = levels.get(item.difficulty, 0) + 1
        totals[item.difficulty] = totals.get(item.difficulty, 0) + 1
        if not item.explanation:
            course_data["missing_explanation"] += 1  # type: ignore[operator]
        dup_key = f"{key}::{item.prompt}"
        prompts[dup_key] = prompts.get(dup_key, 0) + 1

    warnings: list[str] = []
    for key, data in coverage.items():
        levels = data["levels"]  # type: ignore[assignment]
        for lvl in config.LEVELS:
            if levels.get(lvl, 0) < config.BANK_MIN_PER_BUCKET:
                warnings.append(
                    f"{key} level {lvl} has {levels.get(lvl, 0)} (<{config.BANK_MIN_PER_BUCKET})"
                )
    for dup_key, count in prompts.items():
        if count > 1:
            key, prompt = dup_key.split("::", 1)
            warnings.append(f"{key} repeats prompt {prompt!r} {count} times")

    return {"coverage": coverage, "warnings": warnings, "totals": totals}


def _format_row(data: dict[str, int]) -> str:
    return "  ".join(f"{lvl}:{data.get(lvl, 0):3d}" for lvl in config.LEVELS)


def print_report(summary: dict[str, object]) -> None:
    coverage: dict[str, dict[str, object]] = summary["coverage"]  # type: ignore[assignment]
    print("=== Bank Coverage ===")
    for key in sorted(coverage):
        data = coverage[key]
        print(f"\n{key}")
        print("  " + _format_row(data["levels"]))  # type: ignore[arg-type]
        missing = data["missing_explanation"]
        if missing:
            print(f"    missing_explanation: {missing}")

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")

    print("\nTotals:", summary["totals"])


def write_summary(summary: dict[str, object], path: Path = DEFAULT_SUMMARY_PATH) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True)
    path.write_text(text + "\n", encoding="utf-8")
    print(text)
    return text


def main(_argv: list[str] | None = None) -> int:
    items = load_bank()
    summary = audit_items(items)
    print_report(summary)
    write_summary(summary, DEFAULT_SUMMARY_PATH)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
