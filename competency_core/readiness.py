"""Goal readiness: project current skill scores onto a goal's skill weights."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from . import config as cfg_defaults
from .config import EngineSettings
from .taxonomy import QuestType, SkillCategory, clamp_score, parse_category
from .types import ImprovementSuggestion, SkillScore

log = logging.getLogger(__name__)

C = SkillCategory
Q = QuestType


@dataclass(frozen=True)
class GoalSkillMap:
    key: str
    title: str
    weights: Dict[SkillCategory, float]
    quest_mix: Dict[QuestType, int]


GOAL_SKILL_MAPS: Dict[str, GoalSkillMap] = {
    "IAS": GoalSkillMap(
        key="IAS",
        title="IAS Officer",
        weights={
            C.COGNITIVE_REASONING: 0.20,
            C.LANGUAGE: 0.20,
            C.PLANNING: 0.15,
            C.CHARACTER_VALUES: 0.15,
            C.MEMORY: 0.10,
            C.ATTENTION: 0.10,
            C.SOCIAL_EMOTIONAL: 0.10,
        },
        quest_mix={Q.MINI_GAME: 40, Q.REFLECTION: 30, Q.CHOICE_SCENARIO: 30},
    ),
    "Doctor": GoalSkillMap(
        key="Doctor",
        title="Doctor",
        weights={
            C.MEMORY: 0.20,
            C.ATTENTION: 0.15,
            C.COGNITIVE_REASONING: 0.15,
            C.METACOGNITION: 0.15,
            C.LANGUAGE: 0.10,
            C.CHARACTER_VALUES: 0.10,
            C.PLANNING: 0.10,
            C.SOCIAL_EMOTIONAL: 0.05,
        },
        quest_mix={Q.MINI_GAME: 50, Q.REFLECTION: 25, Q.CHOICE_SCENARIO: 25},
    ),
    "Software Engineer": GoalSkillMap(
        key="Software Engineer",
        title="Software Engineer",
        weights={
            C.COGNITIVE_REASONING: 0.25,
            C.PLANNING: 0.20,
            C.ATTENTION: 0.15,
            C.CREATIVITY: 0.15,
            C.LANGUAGE: 0.10,
            C.METACOGNITION: 0.10,
            C.CHARACTER_VALUES: 0.05,
        },
        quest_mix={Q.MINI_GAME: 60, Q.REFLECTION: 20, Q.CHOICE_SCENARIO: 20},
    ),
    "Entrepreneur": GoalSkillMap(
        key="Entrepreneur",
        title="Entrepreneur",
        weights={
            C.CREATIVITY: 0.20,
            C.LANGUAGE: 0.20,
            C.PLANNING: 0.15,
            C.SOCIAL_EMOTIONAL: 0.15,
            C.CHARACTER_VALUES: 0.10,
            C.COGNITIVE_REASONING: 0.10,
            C.METACOGNITION: 0.10,
        },
        quest_mix={Q.MINI_GAME: 30, Q.REFLECTION: 30, Q.CHOICE_SCENARIO: 40},
    ),
    "CA": GoalSkillMap(
        key="CA",
        title="Chartered Accountant",
        weights={
            C.COGNITIVE_REASONING: 0.25,
            C.ATTENTION: 0.20,
            C.PLANNING: 0.15,
            C.MEMORY: 0.15,
            C.METACOGNITION: 0.15,
            C.CHARACTER_VALUES: 0.10,
        },
        quest_mix={Q.MINI_GAME: 60, Q.REFLECTION: 25, Q.CHOICE_SCENARIO: 15},
    ),
}

# whole-word aliases for free-text goal titles (plural and -ing forms too), checked in order
_GOAL_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("engineer", "programming", "developer"), "Software Engineer"),
    (("doctor", "medical", "physician"), "Doctor"),
    (("entrepreneur", "business", "startup"), "Entrepreneur"),
    (("accountant", "ca", "chartered"), "CA"),
    (("ias", "civil service", "administrative"), "IAS"),
)

# used only where a map is required (weekly plan), never for readiness
BALANCED_GOAL_MAP = GoalSkillMap(
    key="Balanced",
    title="Balanced",
    weights={
        C.COGNITIVE_REASONING: 0.15,
        C.CREATIVITY: 0.15,
        C.LANGUAGE: 0.15,
        C.PLANNING: 0.15,
        C.ATTENTION: 0.10,
        C.MEMORY: 0.10,
        C.SOCIAL_EMOTIONAL: 0.10,
        C.METACOGNITION: 0.10,
    },
    quest_mix={Q.MINI_GAME: 40, Q.REFLECTION: 30, Q.CHOICE_SCENARIO: 30},
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def goal_map_from_weights(title: str, weights: Mapping[object, float]) -> GoalSkillMap:
    """Build an ad-hoc goal map, e.g. a tenant's custom goal."""
    parsed = {parse_category(k): float(v) for k, v in weights.items()}
    return GoalSkillMap(key=title, title=title, weights=parsed, quest_mix=dict(BALANCED_GOAL_MAP.quest_mix))


def resolve_goal_map(
    goal_title: str | None,
    registry: Mapping[str, GoalSkillMap] | None = None,
) -> Optional[GoalSkillMap]:
    """Exact key, then case-insensitive key/title, then keyword aliases.

    Keyword aliases only apply to the built-in registry.
    """
    if not goal_title:
        return None
    maps = GOAL_SKILL_MAPS if registry is None else registry
    if goal_title in maps:
        return maps[goal_title]
    lowered = goal_title.strip().lower()
    for goal in maps.values():
        if lowered in (goal.key.lower(), goal.title.lower()):
            return goal
    if registry is not None:
        return None
    for keywords, key in _GOAL_KEYWORDS:
        if any(re.search(rf"\b{re.escape(k)}(?:s|ing)?\b", lowered) for k in keywords):
            return GOAL_SKILL_MAPS[key]
    return None


def goal_map_or_default(goal_title: str | None) -> GoalSkillMap:
    return resolve_goal_map(goal_title) or BALANCED_GOAL_MAP


def _default_score(default_score: int | None, settings: EngineSettings | None) -> int:
    if default_score is not None:
        return default_score
    if settings is not None:
        return settings.default_skill_score
    return cfg_defaults.DEFAULT_SKILL_SCORE


def _score_map(skill_scores: Mapping[object, object]) -> Dict[SkillCategory, float]:
    out: Dict[SkillCategory, float] = {}
    for key, val in skill_scores.items():
        cat = parse_category(key)
        raw = val.score if isinstance(val, SkillScore) else val
        out[cat] = clamp_score(float(raw))  # type: ignore[arg-type]
    return out


def calculate_goal_readiness(
    goal_title: str | None,
    skill_scores: Mapping[object, object],
    default_score: int | None = None,
    registry: Mapping[str, GoalSkillMap] | None = None,
    settings: EngineSettings | None = None,
) -> int:
    """Readiness (0..100) for a goal given current skill scores.

    ``skill_scores`` maps categories to numbers or ``SkillScore`` records.
    Unmeasured skills in a registered goal map count as ``default_score``
    (else ``settings.default_skill_score``, 50 out of the box). A goal
    without a registered map falls back to the plain average of the
    measured skills, or 0 when nothing is measured.
    """
    scores = _score_map(skill_scores)
    default = _default_score(default_score, settings)
    goal = resolve_goal_map(goal_title, registry)
    if goal is None:
        log.debug("no goal map for %r; using unweighted average", goal_title)
        if not scores:
            return 0
        return round_half_up(sum(scores.values()) / len(scores))

    total_weight = 0.0
    weighted = 0.0
    for skill, weight in goal.weights.items():
        weighted += scores.get(skill, float(default)) * weight
        total_weight += weight
    if total_weight <= 0:
        return 0
    return max(0, min(100, round_half_up(weighted / total_weight)))


def get_skill_improvement_suggestions(
    goal_title: str | None,
    skill_scores: Mapping[object, object],
    default_score: int | None = None,
    limit: int | None = None,
    registry: Mapping[str, GoalSkillMap] | None = None,
    settings: EngineSettings | None = None,
) -> List[ImprovementSuggestion]:
    """Goal skills ranked by ``weight * (100 - score)``, highest first."""
    goal = resolve_goal_map(goal_title, registry)
    if goal is None:
        return []
    scores = _score_map(skill_scores)
    default = _default_score(default_score, settings)
    out: List[ImprovementSuggestion] = []
    for skill, weight in goal.weights.items():
        current = scores.get(skill, float(default))
        out.append(
            ImprovementSuggestion(
                skill=skill,
                weight=weight,
                current_score=current,
                priority=weight * (100.0 - current),
            )
        )
    out.sort(key=lambda s: s.priority, reverse=True)
    return out[:limit] if limit is not None else out
