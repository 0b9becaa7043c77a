"""Rank candidate quests for a teacher assignment.

Priority for a quest is built in three steps:

1. base: for each primary skill, ``emphasis(grade, skill) * (100 - score)``
   plus ``weak_signal_weight * weak_count(skill)``;
2. class focus: the first primary skill present in the boost map scales the
   base by ``1 + boost`` (boost clamped to ``[0, class_focus_max_boost]``);
3. intent: a quest touching any intent skill is multiplied by
   ``intent_multiplier``.

Ties keep input order, so the same inputs always give the same list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config as cfg_defaults
from .config import EngineSettings
from .expectations import emphasis_weight
from .taxonomy import QuestType, SkillCategory, clamp_score, parse_category
from .types import CompletedAttempt, PriorityBreakdown, QuestCandidate, RankedQuest, SkillScore

log = logging.getLogger(__name__)

C = SkillCategory


class Intent(str, Enum):
    IMPROVE_FOCUS = "IMPROVE_FOCUS"
    STRENGTHEN_PLANNING = "STRENGTHEN_PLANNING"
    ENCOURAGE_COMMUNICATION = "ENCOURAGE_COMMUNICATION"
    BUILD_CONSISTENCY = "BUILD_CONSISTENCY"
    PREPARE_FOR_EXAMS = "PREPARE_FOR_EXAMS"
    REENGAGE_PARTICIPATION = "REENGAGE_PARTICIPATION"


INTENT_SKILLS: Dict[Intent, FrozenSet[SkillCategory]] = {
    Intent.IMPROVE_FOCUS: frozenset({C.ATTENTION, C.METACOGNITION}),
    Intent.STRENGTHEN_PLANNING: frozenset({C.PLANNING, C.METACOGNITION}),
    Intent.ENCOURAGE_COMMUNICATION: frozenset({C.LANGUAGE, C.SOCIAL_EMOTIONAL}),
    Intent.BUILD_CONSISTENCY: frozenset({C.PLANNING, C.METACOGNITION}),
    Intent.PREPARE_FOR_EXAMS: frozenset({C.COGNITIVE_REASONING, C.MEMORY, C.PLANNING}),
    Intent.REENGAGE_PARTICIPATION: frozenset({C.CREATIVITY, C.SOCIAL_EMOTIONAL}),
}


@dataclass
class SelectionParams:
    grade: int
    candidates: Sequence[QuestCandidate]
    skill_scores: Mapping[SkillCategory, float] = field(default_factory=dict)
    weak_signals: Mapping[SkillCategory, int] = field(default_factory=dict)
    class_focus: Optional[Mapping[SkillCategory, float]] = None
    intent: Optional[Intent] = None
    quest_type: Optional[QuestType] = None
    quest_count: Optional[int] = None


def _emit_trace(**values: object) -> None:
    if not cfg_defaults.DEBUG_CLASS_FOCUS:
        return
    ordered = []
    for key in cfg_defaults.TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


def clamp_boost(boost: float, settings: EngineSettings | None = None) -> float:
    cap = (settings or EngineSettings.from_cfg(None)).class_focus_max_boost
    return max(0.0, min(cap, float(boost)))


def is_grade_applicable(quest: QuestCandidate, grade: int) -> bool:
    # an empty applicability set means the quest is not grade-restricted
    return not quest.grade_applicability or int(grade) in quest.grade_applicability


def base_priority(
    quest: QuestCandidate,
    grade: int,
    skill_scores: Mapping[SkillCategory, float],
    weak_signals: Mapping[SkillCategory, int],
    settings: EngineSettings,
) -> float:
    total = 0.0
    for skill in quest.primary_skills:
        score = skill_scores.get(skill, float(settings.default_skill_score))
        total += emphasis_weight(grade, skill) * (100.0 - score)
        total += settings.weak_signal_weight * weak_signals.get(skill, 0)
    return total


def apply_class_focus_boost(
    quest: QuestCandidate,
    base: float,
    class_focus: Optional[Mapping[SkillCategory, float]],
    settings: EngineSettings,
) -> Tuple[float, float, Optional[SkillCategory]]:
    """Return (boosted priority, applied boost, boosted skill)."""
    if not class_focus:
        return base, 0.0, None
    for skill in quest.primary_skills:
        if skill in class_focus:
            boost = clamp_boost(class_focus[skill], settings)
            return base * (1.0 + boost), boost, skill
    return base, 0.0, None


def intent_factor(quest: QuestCandidate, intent: Optional[Intent], settings: EngineSettings) -> float:
    if intent is None:
        return 1.0
    skills = INTENT_SKILLS.get(intent, frozenset())
    if skills.intersection(quest.primary_skills):
        return settings.intent_multiplier
    return 1.0


def _normalize_scores(raw: Mapping[object, object]) -> Dict[SkillCategory, float]:
    out: Dict[SkillCategory, float] = {}
    for key, val in raw.items():
        score = val.score if isinstance(val, SkillScore) else val
        out[parse_category(key)] = clamp_score(float(score))  # type: ignore[arg-type]
    return out


def select_quests_for_assignment(
    params: SelectionParams,
    settings: EngineSettings | None = None,
) -> List[RankedQuest]:
    """Filter, score and rank the candidate pool.

    Parameters
    ----------
    params : SelectionParams
        Target grade, candidate pool and the scoring inputs.
    settings : EngineSettings, optional
        Tunables; module defaults when omitted.

    Returns
    -------
    list of RankedQuest
        At most ``quest_count`` quests, highest priority first. An empty
        list is a valid answer when nothing matches the filters.
    """
    s = settings or EngineSettings.from_cfg(None)
    count = s.default_quest_count if params.quest_count is None else max(0, int(params.quest_count))
    scores = _normalize_scores(params.skill_scores)
    weak = {parse_category(k): int(v) for k, v in params.weak_signals.items()}
    focus = (
        {parse_category(k): float(v) for k, v in params.class_focus.items()}
        if params.class_focus
        else None
    )

    pool = [q for q in params.candidates if is_grade_applicable(q, params.grade)]
    if params.quest_type is not None:
        pool = [q for q in pool if q.type == params.quest_type]
    if not pool:
        log.info("empty candidate pool grade=%s type=%s", params.grade, params.quest_type)
        return []

    ranked: List[RankedQuest] = []
    for quest in pool:
        base = base_priority(quest, params.grade, scores, weak, s)
        boosted, boost, skill = apply_class_focus_boost(quest, base, focus, s)
        factor = intent_factor(quest, params.intent, s)
        final = boosted * factor
        ranked.append(
            RankedQuest(
                quest=quest,
                priority=final,
                breakdown=PriorityBreakdown(
                    base=base,
                    boost=boost,
                    boosted_skill=skill,
                    intent_factor=factor,
                    final=final,
                ),
            )
        )

    # sorted() is stable, so equal priorities keep pool order
    ranked = sorted(ranked, key=lambda r: r.priority, reverse=True)[:count]
    for r in ranked:
        _emit_trace(
            quest_id=r.quest.id,
            skill=r.breakdown.boosted_skill.value if r.breakdown.boosted_skill else "-",
            base=f"{r.breakdown.base:.2f}",
            boost=f"{r.breakdown.boost:.2f}",
            intent=f"{r.breakdown.intent_factor:.2f}",
            final=f"{r.breakdown.final:.2f}",
        )
    return ranked


def recent_weak_signal_counts(
    attempts: Iterable[CompletedAttempt],
    now: datetime,
    window_days: int | None = None,
    settings: EngineSettings | None = None,
) -> Dict[SkillCategory, int]:
    """Count weak skill signals flagged by attempts inside the window."""
    if window_days is not None:
        days = int(window_days)
    elif settings is not None:
        days = settings.weak_signal_window_days
    else:
        days = cfg_defaults.WEAK_SIGNAL_WINDOW_DAYS
    since = now - timedelta(days=days)
    counts: Dict[SkillCategory, int] = {}
    for attempt in attempts:
        if attempt.completed_at < since or attempt.completed_at > now:
            continue
        for skill in attempt.skill_signals:
            counts[skill] = counts.get(skill, 0) + 1
    return counts


def average_skill_scores(
    per_student: Sequence[Mapping[object, object]],
    default_score: int | None = None,
    settings: EngineSettings | None = None,
) -> Dict[SkillCategory, float]:
    """Class-level scores: per-category mean over students, default score if unmeasured."""
    if default_score is not None:
        default = default_score
    elif settings is not None:
        default = settings.default_skill_score
    else:
        default = cfg_defaults.DEFAULT_SKILL_SCORE
    sums: Dict[SkillCategory, float] = {}
    counts: Dict[SkillCategory, int] = {}
    for scores in per_student:
        for cat, val in _normalize_scores(scores).items():
            sums[cat] = sums.get(cat, 0.0) + val
            counts[cat] = counts.get(cat, 0) + 1
    return {
        cat: (sums[cat] / counts[cat]) if counts.get(cat) else float(default)
        for cat in SkillCategory
    }
