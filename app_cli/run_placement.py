from __future__ import annotations
import argparse, json
from placement_core.engine import PlacementSession
from placement_core.question_bank import BankSelector, load_bank
from placement_core.types import SubjectRef
def ask(prompt: str, options) -> int:
    print(prompt)
    for i,opt in enumerate(options): print(f"  [{i}] {opt}")
    while True:
        v = input("Your choice (index): ").strip()
        if v.isdigit() and int(v) < len(options): return int(v)
        print("Enter a valid choice index.")
def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Interactive placement run over the item bank")
    ap.add_argument("--course", action="append", default=[], metavar="SUBJECT:COURSE",
                    help="queue a course; repeat in interest order (default: every bank course)")
    ap.add_argument("--bank", default=None, help="path to a bank JSON file")
    a = ap.parse_args(argv)
    selector = BankSelector(load_bank(a.bank))
    if a.course:
        bad = [spec for spec in a.course if ":" not in spec or not all(p.strip() for p in spec.split(":", 1))]
        if bad:
            ap.error(f"--course expects SUBJECT:COURSE, got {bad[0]!r}")
        queue = [SubjectRef(*(p.strip() for p in spec.split(":", 1))) for spec in a.course]
    else:
        queue = [SubjectRef(s, c) for s, c in selector.courses()]
    session = PlacementSession(queue, selector)
    print("Placement Test")
    item = session.next_item()
    while item is not None:
        st = session.state
        print(f"\n{st.subject} | {st.course} | Step {st.step}/{st.max_steps} | {st.difficulty}")
        item = session.answer_current(ask(item.prompt, item.choices))
    results = [r.to_dict() for r in session.finalize()]
    print("\nDone.")
    print(json.dumps(results, indent=2))
    return 0
if __name__ == "__main__": raise SystemExit(main())
