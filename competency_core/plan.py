from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import EngineSettings
from .expectations import emphasis_weight
from .prioritizer import SelectionParams, select_quests_for_assignment
from .quests import QUEST_LIBRARY
from .readiness import calculate_goal_readiness, goal_map_or_default, round_half_up
from .taxonomy import QuestType, SkillCategory, clamp_score, parse_category
from .types import QuestCandidate

log = logging.getLogger(__name__)

Q = QuestType

_GRADE_QUEST_MIX: Dict[int, Dict[QuestType, float]] = {
    8: {Q.MINI_GAME: 0.40, Q.CHOICE_SCENARIO: 0.30, Q.REFLECTION: 0.30},
    9: {Q.MINI_GAME: 0.50, Q.CHOICE_SCENARIO: 0.25, Q.REFLECTION: 0.25},
    10: {Q.MINI_GAME: 0.60, Q.CHOICE_SCENARIO: 0.25, Q.REFLECTION: 0.15},
}


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def focus_skill_priorities(
    weights: Mapping[SkillCategory, float],
    scores: Mapping[SkillCategory, float],
    grade: int,
    default_score: float,
) -> List[Dict[str, Any]]:
    rows = []
    for skill, weight in weights.items():
        current = scores.get(skill, default_score)
        emphasis = emphasis_weight(grade, skill)
        rows.append(
            {
                "skill": skill,
                "weight": weight,
                "grade_emphasis": emphasis,
                "current_score": current,
                "priority": weight * (1.0 + emphasis) * (100.0 - current),
            }
        )
    rows.sort(key=lambda r: r["priority"], reverse=True)
    return rows


def daily_quest_types(grade: int, quest_count: int, day_index: int) -> List[QuestType]:
    """Split ``quest_count`` by the grade's mix and interleave the types.

    Reflections take the remainder. The interleave start rotates with the
    day so the week does not open every day with the same type.
    """
    mix = _GRADE_QUEST_MIX.get(grade, _GRADE_QUEST_MIX[10])
    mini = round_half_up(mix[Q.MINI_GAME] * quest_count)
    scenario = round_half_up(mix[Q.CHOICE_SCENARIO] * quest_count)
    mini = min(mini, quest_count)
    scenario = min(scenario, quest_count - mini)
    reflection = quest_count - mini - scenario
    buckets = [[Q.MINI_GAME] * mini, [Q.REFLECTION] * reflection, [Q.CHOICE_SCENARIO] * scenario]
    shift = day_index % len(buckets)
    buckets = buckets[shift:] + buckets[:shift]
    out: List[QuestType] = []
    while any(buckets):
        for bucket in buckets:
            if bucket:
                out.append(bucket.pop())
    return out


def _ranked_by_type(
    grade: int,
    scores: Mapping[SkillCategory, float],
    focus: Sequence[SkillCategory],
    pool: Sequence[QuestCandidate],
    settings: EngineSettings,
) -> Dict[QuestType, List[QuestCandidate]]:
    out: Dict[QuestType, List[QuestCandidate]] = {}
    for qtype in QuestType:
        ranked = select_quests_for_assignment(
            SelectionParams(
                grade=grade,
                candidates=pool,
                skill_scores=scores,
                quest_type=qtype,
                quest_count=len(pool),
            ),
            settings,
        )
        on_focus = [r.quest for r in ranked if set(r.quest.primary_skills) & set(focus)]
        off_focus = [r.quest for r in ranked if not set(r.quest.primary_skills) & set(focus)]
        out[qtype] = on_focus + off_focus
    return out


def generate_weekly_plan(
    student_id: str,
    goal_title: str,
    minutes_per_day: int,
    skill_scores: Mapping[object, float],
    week_start: date,
    grade: Optional[int] = None,
    settings: EngineSettings | None = None,
    pool: Sequence[QuestCandidate] = QUEST_LIBRARY,
) -> Dict[str, Any]:
    """Build a 7-day facilitator plan toward ``goal_title``.

    Parameters
    ----------
    student_id : str
        Carried through to the payload.
    goal_title : str
        Goal whose skill map drives focus selection. Unregistered goals use
        a balanced map here, since a plan needs weights to pick focus skills.
    minutes_per_day : int
        Daily time budget; one quest per ``plan_minutes_per_quest`` minutes.
    skill_scores : Mapping
        Current category scores (0..100); missing skills count as 50.
    week_start : date
        First day of the plan.
    grade : int, optional
        Student grade (8 when unknown).

    Returns
    -------
    dict
        ``focus_skills``, ``daily_plan`` (7 days), ``current_readiness`` and
        the capped ``goal_readiness_delta`` estimate. The same inputs always
        give the same plan.
    """
    s = settings or EngineSettings.from_cfg(None)
    g = _safe_int(grade, 8)
    scores = {parse_category(k): clamp_score(float(v)) for k, v in skill_scores.items()}
    goal = goal_map_or_default(goal_title)

    priorities = focus_skill_priorities(goal.weights, scores, g, float(s.default_skill_score))
    top = priorities[: s.plan_focus_max]
    focus = [r["skill"] for r in top]

    per_day = max(0, _safe_int(minutes_per_day, 0)) // s.plan_minutes_per_quest
    by_type = _ranked_by_type(g, scores, focus, pool, s)

    daily: List[Dict[str, Any]] = []
    for day_index in range(7):
        day = week_start + timedelta(days=day_index)
        used: Dict[QuestType, int] = {}
        quests: List[Dict[str, Any]] = []
        for slot, qtype in enumerate(daily_quest_types(g, per_day, day_index)):
            options = by_type.get(qtype) or []
            if not options:
                continue
            n = used.get(qtype, 0)
            used[qtype] = n + 1
            quest = options[(day_index + n) % len(options)]
            quests.append(
                {
                    "id": f"{quest.id}-{day.isoformat()}-{slot}",
                    "quest_id": quest.id,
                    "type": quest.type.value,
                    "title": quest.title,
                    "description": quest.description,
                    "estimated_minutes": quest.estimated_minutes,
                    "skill_focus": [c.value for c in quest.primary_skills],
                }
            )
        daily.append({"day_index": day_index, "date": day.isoformat(), "quests": quests})

    avg_priority = sum(r["priority"] for r in top) / len(top) if top else 0.0
    delta = min(s.plan_max_readiness_delta, avg_priority / 20.0)
    log.debug("weekly plan student=%s goal=%s focus=%s per_day=%d", student_id, goal.key, focus, per_day)

    return {
        "student_id": student_id,
        "goal": goal.key,
        "week_start": week_start.isoformat(),
        "week_end": (week_start + timedelta(days=6)).isoformat(),
        "focus_skills": [c.value for c in focus],
        "daily_time_budget": minutes_per_day,
        "daily_plan": daily,
        "current_readiness": calculate_goal_readiness(goal_title, scores, settings=s),
        "goal_readiness_delta": round(delta, 2),
    }
