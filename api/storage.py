"""JSON-file persistence for skill scores, attempts and class focus profiles.

The production deployment should swap this module for a proper
database-backed implementation. Records are partitioned by tenant; the core
never sees another tenant's rows because every store instance is bound to
one tenant.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from competency_core.taxonomy import ActivityKind, SkillCategory
from competency_core.types import ClassFocusProfile, CompletedAttempt, SkillScore


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
SKILL_SCORES_PATH = DATA_ROOT / "skill_scores.json"
ATTEMPTS_PATH = DATA_ROOT / "attempts.json"
CLASS_FOCUS_PATH = DATA_ROOT / "class_focus.json"

_LOCK = threading.Lock()


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _dt(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class JsonSkillScoreStore:
    """Skill scores for one tenant, keyed student -> category."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id

    def get(self, student_id: str, category: SkillCategory) -> Optional[SkillScore]:
        with _LOCK:
            data = _read_json(SKILL_SCORES_PATH, {})
        raw = data.get(self.tenant_id, {}).get(student_id, {}).get(category.value)
        return SkillScore.from_dict(raw) if raw else None

    def put(self, record: SkillScore) -> None:
        with _LOCK:
            data: Dict[str, Any] = _read_json(SKILL_SCORES_PATH, {})
            student = data.setdefault(self.tenant_id, {}).setdefault(record.student_id, {})
            student[record.category.value] = record.to_dict()
            _write_json(SKILL_SCORES_PATH, data)

    def list_for_student(self, student_id: str) -> List[SkillScore]:
        with _LOCK:
            data = _read_json(SKILL_SCORES_PATH, {})
        rows = data.get(self.tenant_id, {}).get(student_id, {})
        return [SkillScore.from_dict(rows[k]) for k in sorted(rows)]


def attempt_to_dict(attempt: CompletedAttempt) -> Dict[str, Any]:
    return {
        "id": attempt.id,
        "student_id": attempt.student_id,
        "kind": attempt.kind.value,
        "activity_id": attempt.activity_id,
        "activity_name": attempt.activity_name,
        "completed_at": attempt.completed_at.isoformat(),
        "normalized_scores": {k.value: v for k, v in attempt.normalized_scores.items()},
        "raw_scores": dict(attempt.raw_scores),
        "time_spent_sec": attempt.time_spent_sec,
        "hints_used": attempt.hints_used,
        "grade": attempt.grade,
        "skill_signals": [c.value for c in attempt.skill_signals],
    }


def attempt_from_dict(raw: Dict[str, Any]) -> CompletedAttempt:
    return CompletedAttempt(
        id=raw["id"],
        student_id=raw["student_id"],
        kind=ActivityKind(raw["kind"]),
        activity_id=raw["activity_id"],
        activity_name=raw.get("activity_name"),
        completed_at=datetime.fromisoformat(raw["completed_at"]),
        normalized_scores={SkillCategory(k): float(v) for k, v in raw.get("normalized_scores", {}).items()},
        raw_scores=dict(raw.get("raw_scores", {})),
        time_spent_sec=int(raw.get("time_spent_sec", 0)),
        hints_used=int(raw.get("hints_used", 0)),
        grade=raw.get("grade"),
        skill_signals=tuple(SkillCategory(c) for c in raw.get("skill_signals", [])),
    )


def record_attempt(tenant_id: str, attempt: CompletedAttempt) -> None:
    with _LOCK:
        data: Dict[str, Any] = _read_json(ATTEMPTS_PATH, {})
        rows = data.setdefault(tenant_id, {}).setdefault(attempt.student_id, [])
        if any(r["id"] == attempt.id for r in rows):
            raise ValueError(f"attempt {attempt.id} already recorded")
        rows.append(attempt_to_dict(attempt))
        _write_json(ATTEMPTS_PATH, data)


def attempts_for_student(tenant_id: str, student_id: str) -> List[CompletedAttempt]:
    with _LOCK:
        data = _read_json(ATTEMPTS_PATH, {})
    rows = data.get(tenant_id, {}).get(student_id, [])
    out = [attempt_from_dict(r) for r in rows]
    out.sort(key=lambda a: (a.completed_at, a.id))
    return out


def _profile_to_dict(p: ClassFocusProfile) -> Dict[str, Any]:
    return {
        "id": p.id,
        "tenant_id": p.tenant_id,
        "teacher_id": p.teacher_id,
        "boosts": {k.value: v for k, v in p.boosts.items()},
        "grade": p.grade,
        "start_date": _iso(p.start_date),
        "end_date": _iso(p.end_date),
        "notes": p.notes,
        "is_active": p.is_active,
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
    }


def _profile_from_dict(raw: Dict[str, Any]) -> ClassFocusProfile:
    return ClassFocusProfile(
        id=raw["id"],
        tenant_id=raw["tenant_id"],
        teacher_id=raw["teacher_id"],
        boosts={SkillCategory(k): float(v) for k, v in raw.get("boosts", {}).items()},
        grade=raw.get("grade"),
        start_date=_dt(raw.get("start_date")),
        end_date=_dt(raw.get("end_date")),
        notes=raw.get("notes", ""),
        is_active=bool(raw.get("is_active")),
        created_at=_dt(raw.get("created_at")),
        updated_at=_dt(raw.get("updated_at")),
    )


class JsonClassFocusStore:
    def list_profiles(self, tenant_id: str, teacher_id: str) -> List[ClassFocusProfile]:
        with _LOCK:
            data = _read_json(CLASS_FOCUS_PATH, {})
        return [_profile_from_dict(r) for r in data.get(tenant_id, {}).get(teacher_id, [])]

    def save_profiles(self, tenant_id: str, teacher_id: str, profiles: List[ClassFocusProfile]) -> None:
        with _LOCK:
            data: Dict[str, Any] = _read_json(CLASS_FOCUS_PATH, {})
            data.setdefault(tenant_id, {})[teacher_id] = [_profile_to_dict(p) for p in profiles]
            _write_json(CLASS_FOCUS_PATH, data)
