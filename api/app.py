from __future__ import annotations
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
import uuid, os, logging, typing as t

# ---- Engine imports ----
from placement_core.engine import build_queue, make_selector, prefetch_branches, take_turn
from placement_core.errors import ItemSourceError, StateError
from placement_core.question_bank import ItemSelector
from placement_core.scoring import summarize
from placement_core.types import AssessmentItem, AssessmentState, SubjectRef, TurnEvent
from placement_core.config import load_config, item_source, get_backend
from placement_core.audit_export import to_json as history_to_json, to_csv as history_to_csv
from .storage import (
    clear_placement_flag,
    completed_courses,
    list_results_for_user,
    load_profile,
    load_result,
    save_profile,
    save_result,
    subject_states_for_user,
    upsert_subject_state,
    utcnow_iso,
)

log = logging.getLogger(__name__)

SELECTOR: ItemSelector | None = None

app = FastAPI(title="Placement API")


@app.get("/")
def root():
    return {"status": "ok", "service": "placement-api"}


ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,  # keep False unless you use cookies
)

# ---- Schemas ----
class SubjectIn(BaseModel):
    subject: str
    course: str

class ProfileReq(BaseModel):
    interests: list[SubjectIn]

class NextReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    user_id: str | None = Field(None, alias="userId")
    state: dict[str, t.Any] | None = None
    # validated by the engine so bools and floats are rejected there
    last_answer: t.Any = Field(None, alias="lastAnswer")
    last_item: dict[str, t.Any] | None = Field(None, alias="lastItem")

class FinishReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    user_id: str = Field(..., alias="userId")
    history: list[dict[str, t.Any]]

# ---- Helpers ----
def _selector() -> ItemSelector:
    global SELECTOR
    if SELECTOR is None:
        SELECTOR = make_selector(load_config())
    return SELECTOR


def _queue_for(user_id: str | None) -> list[SubjectRef]:
    if not user_id:
        raise HTTPException(400, "userId is required to start a placement")
    profile = load_profile(user_id)
    if not profile:
        raise HTTPException(404, "profile not found")
    interests = [SubjectRef.from_dict(r) for r in profile.get("interests") or []]
    if not interests:
        raise HTTPException(400, "No interests")
    queue = build_queue(interests, completed_courses(user_id))
    if not queue:
        raise HTTPException(400, "No course needs placement")
    return queue

# ---- Health ----
@app.get("/health")
def health():
    cfg = load_config()
    return {
        "item_source": item_source(cfg),
        "llm_backend": get_backend(cfg) or "none",
        "prefetch": bool(cfg.get("PLACEMENT_PREFETCH", False)),
    }

# ---- Profile ----
@app.put("/users/{user_id}/profile")
def put_profile(user_id: str, req: ProfileReq):
    if not req.interests:
        raise HTTPException(400, "No interests")
    return save_profile(user_id, [i.model_dump() for i in req.interests])


@app.get("/users/{user_id}/profile")
def get_profile(user_id: str):
    profile = load_profile(user_id)
    if not profile:
        raise HTTPException(404, "profile not found")
    return profile


@app.get("/users/{user_id}/subject-states")
def get_subject_states(user_id: str):
    return {"states": subject_states_for_user(user_id)}


@app.get("/users/{user_id}/results")
def list_results(user_id: str):
    return {"results": list_results_for_user(user_id)}

# ---- Placement turns ----
@app.post("/placement/next")
def placement_next(req: NextReq):
    try:
        state = AssessmentState.from_dict(req.state) if req.state is not None else None
        last_item = AssessmentItem.from_dict(req.last_item) if req.last_item is not None else None
        queue = _queue_for(req.user_id) if state is None else None
        selector = _selector()
        outcome = take_turn(state, req.last_answer, last_item, selector, queue=queue)
    except StateError as e:
        raise HTTPException(400, str(e))
    except ItemSourceError as e:
        log.error("item source failure: %s", e)
        raise HTTPException(503, str(e))

    payload = outcome.to_dict()
    if load_config().get("PLACEMENT_PREFETCH") and outcome.item is not None:
        branches = prefetch_branches(outcome.state, outcome.item, selector)
        payload["branches"] = {k: (v.to_dict() if v else None) for k, v in branches.items()}
    return payload


@app.post("/placement/finish")
def placement_finish(req: FinishReq):
    if not load_profile(req.user_id):
        raise HTTPException(404, "profile not found")
    try:
        events = [TurnEvent.from_dict(e) for e in req.history]
    except StateError as e:
        raise HTTPException(400, str(e))
    results = summarize(events)
    if not results:
        raise HTTPException(400, "history is empty")

    result_id = str(uuid.uuid4())
    created = utcnow_iso()
    body = {
        "id": result_id,
        "resultId": result_id,
        "userId": req.user_id,
        "created_at": created,
        "results": [r.to_dict() for r in results],
        "history": [e.to_dict() for e in events],
        "correctTotal": sum(r.correct for r in results),
        "questionTotal": sum(r.total for r in results),
    }

    persisted = True
    try:
        for r in results:
            upsert_subject_state(req.user_id, {
                "subject": r.subject,
                "course": r.course,
                "difficulty": r.calibrated_difficulty,
                "mastery": r.mastery,
            })
        clear_placement_flag(req.user_id)
        save_result(result_id, body, {
            "userId": req.user_id,
            "createdAt": created,
            "courses": [r.course for r in results],
        })
    except OSError as e:
        log.warning("placement persistence failed user=%s: %s", req.user_id, e)
        persisted = False

    return {**body, "persisted": persisted}

# ---- Stored results ----
@app.get("/results/{result_id}")
def get_result(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    return result


@app.get("/results/{result_id}/history.json")
def get_history_json(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    return {"result_id": result_id, **history_to_json(result.get("history") or [])}


@app.get("/results/{result_id}/history.csv")
def get_history_csv(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    body = history_to_csv(result.get("history") or [])
    filename = f"{result_id}_history.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )
