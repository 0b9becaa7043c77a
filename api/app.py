from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import threading, uuid, typing as t
from datetime import date, datetime, timezone

# ---- Engine imports ----
from competency_core.aggregator import ScoreAggregator, normalize_attempt_scores
from competency_core.config import default_settings
from competency_core.errors import InvalidCategory
from competency_core.focus import ClassFocusRegistry, boosts_for_ranking
from competency_core.history_export import to_csv as history_to_csv, to_json as history_to_json
from competency_core.insights import build_parent_insights
from competency_core.plan import generate_weekly_plan
from competency_core.prioritizer import (
    Intent,
    SelectionParams,
    average_skill_scores,
    recent_weak_signal_counts,
    select_quests_for_assignment,
)
from competency_core.quests import QUEST_LIBRARY, generate_daily_quests
from competency_core.readiness import calculate_goal_readiness, get_skill_improvement_suggestions
from competency_core.taxonomy import ActivityKind, QuestType, game_categories, parse_category
from competency_core.types import CompletedAttempt
from .storage import (
    JsonClassFocusStore,
    JsonSkillScoreStore,
    attempts_for_student,
    record_attempt,
)

SETTINGS = default_settings()
AGGREGATORS: dict[str, ScoreAggregator] = {}
_AGG_LOCK = threading.Lock()
FOCUS = ClassFocusRegistry(store=JsonClassFocusStore(), settings=SETTINGS)

app = FastAPI(title="Competency Signals API")


@app.get("/")
def root():
    return {"status": "ok", "service": "competency-signals-api"}


@app.exception_handler(InvalidCategory)
def _invalid_category(_req: Request, exc: InvalidCategory):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ---- Schemas ----
class AnswerIn(BaseModel):
    correct: bool


class AttemptReq(BaseModel):
    student_id: str
    kind: str = "assessment"    # "assessment" | "quest" | "activity"
    activity_id: str
    activity_name: str | None = None
    attempt_id: str | None = None
    answers: list[AnswerIn] | None = None
    normalized_scores: dict[str, float] | None = None
    target_categories: list[str] | None = None
    time_spent_sec: int = 0
    hints_used: int = 0
    grade: int | None = None
    skill_signals: list[str] = []
    completed_at: datetime | None = None


class PlanReq(BaseModel):
    goal_title: str
    minutes_per_day: int = 20
    week_start: date | None = None
    grade: int | None = None


class ClassFocusReq(BaseModel):
    boosts: dict[str, float]
    grade: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    notes: str = ""


class RecommendReq(BaseModel):
    grade: int
    student_ids: list[str] = []
    quest_count: int | None = None
    quest_type: str | None = None
    intent: str | None = None


# ---- Helpers ----
def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # naive client timestamps are taken as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _aggregator(tenant_id: str) -> ScoreAggregator:
    # one aggregator (and one set of key locks) per tenant
    with _AGG_LOCK:
        agg = AGGREGATORS.get(tenant_id)
        if agg is None:
            agg = ScoreAggregator(store=JsonSkillScoreStore(tenant_id), settings=SETTINGS)
            AGGREGATORS[tenant_id] = agg
        return agg


def _enum_or_422(enum_cls: t.Any, value: str | None, label: str) -> t.Any:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(422, f"unknown {label}: {value}")


def _profile_payload(profile) -> dict[str, t.Any]:
    return {
        "id": profile.id,
        "teacher_id": profile.teacher_id,
        "boosts": {k.value: v for k, v in profile.boosts.items()},
        "grade": profile.grade,
        "start_date": profile.start_date.isoformat() if profile.start_date else None,
        "end_date": profile.end_date.isoformat() if profile.end_date else None,
        "notes": profile.notes,
        "is_active": profile.is_active,
    }


# ---- Attempts & skills ----
@app.post("/tenants/{tenant_id}/attempts")
def submit_attempt(tenant_id: str, req: AttemptReq):
    kind = _enum_or_422(ActivityKind, req.kind, "activity kind")
    targets = [parse_category(c) for c in (req.target_categories or [])]
    if not targets and kind == ActivityKind.ASSESSMENT:
        targets = list(game_categories(req.activity_id))

    raw_scores: dict[str, t.Any] = {}
    if req.answers is not None:
        if not targets:
            raise HTTPException(422, "target_categories required for this activity")
        normalized, raw_scores = normalize_attempt_scores(
            [a.model_dump() for a in req.answers], targets, req.time_spent_sec
        )
    elif req.normalized_scores:
        normalized = {parse_category(k): v for k, v in req.normalized_scores.items()}
    else:
        raise HTTPException(422, "answers or normalized_scores required")
    if targets:
        # only aggregated categories are kept on the attempt
        normalized = {c: v for c, v in normalized.items() if c in targets}
        if not normalized:
            raise HTTPException(422, "no scores for the targeted categories")
    else:
        targets = list(normalized)

    attempt = CompletedAttempt(
        id=req.attempt_id or str(uuid.uuid4()),
        student_id=req.student_id,
        kind=kind,
        activity_id=req.activity_id,
        activity_name=req.activity_name,
        completed_at=_aware(req.completed_at) if req.completed_at else _now(),
        normalized_scores=normalized,
        raw_scores=raw_scores,
        time_spent_sec=req.time_spent_sec,
        hints_used=req.hints_used,
        grade=req.grade,
        skill_signals=tuple(parse_category(c) for c in req.skill_signals),
    )
    try:
        record_attempt(tenant_id, attempt)
    except ValueError as exc:
        raise HTTPException(409, str(exc))
    updates = _aggregator(tenant_id).aggregate_attempt_into_skills(attempt, targets)
    return {
        "attempt_id": attempt.id,
        "raw_scores": raw_scores,
        "updates": [
            {"category": u.category.value, "before": u.before, "after": u.after, "trend": u.trend.value}
            for u in updates
        ],
    }


@app.get("/tenants/{tenant_id}/students/{student_id}/skills")
def list_skills(tenant_id: str, student_id: str):
    records = _aggregator(tenant_id).skill_scores(student_id)
    return {"student_id": student_id, "skills": [r.to_dict(SETTINGS) for r in records.values()]}


@app.get("/tenants/{tenant_id}/students/{student_id}/skills/history.json")
def skill_history_json(tenant_id: str, student_id: str):
    records = _aggregator(tenant_id).skill_scores(student_id)
    if not records:
        raise HTTPException(404, "no skill scores for student")
    return {"student_id": student_id, **history_to_json(records.values(), SETTINGS)}


@app.get("/tenants/{tenant_id}/students/{student_id}/skills/history.csv")
def skill_history_csv(tenant_id: str, student_id: str):
    records = _aggregator(tenant_id).skill_scores(student_id)
    if not records:
        raise HTTPException(404, "no skill scores for student")
    filename = f"{student_id}_skill_history.csv"
    return Response(
        content=history_to_csv(records.values(), SETTINGS),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


# ---- Parent / facilitator views ----
@app.get("/tenants/{tenant_id}/students/{student_id}/insights")
def parent_insights(tenant_id: str, student_id: str):
    attempts = attempts_for_student(tenant_id, student_id)
    scores = _aggregator(tenant_id).skill_scores(student_id)
    return build_parent_insights(attempts, scores, _now(), SETTINGS)


@app.get("/tenants/{tenant_id}/students/{student_id}/readiness")
def goal_readiness(tenant_id: str, student_id: str, goal: str = Query(..., description="Goal title")):
    scores = _aggregator(tenant_id).skill_scores(student_id)
    suggestions = get_skill_improvement_suggestions(goal, scores, limit=3, settings=SETTINGS)
    return {
        "student_id": student_id,
        "goal": goal,
        "readiness": calculate_goal_readiness(goal, scores, settings=SETTINGS),
        "suggestions": [
            {"skill": s.skill.value, "weight": s.weight, "current_score": s.current_score, "priority": s.priority}
            for s in suggestions
        ],
    }


@app.post("/tenants/{tenant_id}/students/{student_id}/weekly-plan")
def weekly_plan(tenant_id: str, student_id: str, req: PlanReq):
    scores = {k: v.score for k, v in _aggregator(tenant_id).skill_scores(student_id).items()}
    return generate_weekly_plan(
        student_id,
        req.goal_title,
        req.minutes_per_day,
        scores,
        req.week_start or _now().date(),
        req.grade,
        SETTINGS,
    )


@app.get("/quests/daily")
def daily_quests(grade: int, day: date | None = None):
    quests = generate_daily_quests(grade, day or _now().date())
    return {
        "grade": grade,
        "quests": [
            {
                "id": q.id,
                "type": q.type.value,
                "title": q.title,
                "description": q.description,
                "estimated_minutes": q.estimated_minutes,
                "skill_focus": [c.value for c in q.primary_skills],
            }
            for q in quests
        ],
    }


# ---- Teacher ----
@app.post("/tenants/{tenant_id}/teachers/{teacher_id}/class-focus")
def set_class_focus(tenant_id: str, teacher_id: str, req: ClassFocusReq):
    profile = FOCUS.activate(
        tenant_id,
        teacher_id,
        req.boosts,
        grade=req.grade,
        start_date=_aware(req.start_date) if req.start_date else None,
        end_date=_aware(req.end_date) if req.end_date else None,
        notes=req.notes,
    )
    return _profile_payload(profile)


@app.get("/tenants/{tenant_id}/teachers/{teacher_id}/class-focus")
def get_class_focus(tenant_id: str, teacher_id: str, grade: int | None = None):
    profile = FOCUS.active_for(tenant_id, teacher_id, grade=grade)
    if profile is None:
        raise HTTPException(404, "no active class focus")
    return _profile_payload(profile)


@app.post("/tenants/{tenant_id}/teachers/{teacher_id}/recommend-quests")
def recommend_quests(tenant_id: str, teacher_id: str, req: RecommendReq):
    quest_type = _enum_or_422(QuestType, req.quest_type, "quest type")
    intent = _enum_or_422(Intent, req.intent, "intent")
    agg = _aggregator(tenant_id)
    now = _now()

    per_student = [
        {k: v.score for k, v in agg.skill_scores(sid).items()} for sid in req.student_ids
    ]
    scores = average_skill_scores(per_student, settings=SETTINGS) if per_student else {}
    weak: dict = {}
    for sid in req.student_ids:
        counts = recent_weak_signal_counts(attempts_for_student(tenant_id, sid), now, settings=SETTINGS)
        for skill, n in counts.items():
            weak[skill] = weak.get(skill, 0) + n

    profile = FOCUS.active_for(tenant_id, teacher_id, grade=req.grade, now=now)
    ranked = select_quests_for_assignment(
        SelectionParams(
            grade=req.grade,
            candidates=QUEST_LIBRARY,
            skill_scores=scores,
            weak_signals=weak,
            class_focus=boosts_for_ranking(profile, SETTINGS),
            intent=intent,
            quest_type=quest_type,
            quest_count=req.quest_count,
        ),
        SETTINGS,
    )
    return {
        "grade": req.grade,
        "class_focus_id": profile.id if profile else None,
        "quests": [
            {
                "id": r.quest.id,
                "type": r.quest.type.value,
                "title": r.quest.title,
                "primary_skills": [c.value for c in r.quest.primary_skills],
                "priority": round(r.priority, 4),
                "breakdown": {
                    "base": round(r.breakdown.base, 4),
                    "boost": r.breakdown.boost,
                    "boosted_skill": r.breakdown.boosted_skill.value if r.breakdown.boosted_skill else None,
                    "intent_factor": r.breakdown.intent_factor,
                    "final": round(r.breakdown.final, 4),
                },
            }
            for r in ranked
        ],
    }
