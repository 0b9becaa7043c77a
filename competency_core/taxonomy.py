from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from . import config as cfg_defaults
from .errors import InvalidCategory


class SkillCategory(str, Enum):
    COGNITIVE_REASONING = "COGNITIVE_REASONING"
    CREATIVITY = "CREATIVITY"
    LANGUAGE = "LANGUAGE"
    MEMORY = "MEMORY"
    ATTENTION = "ATTENTION"
    PLANNING = "PLANNING"
    SOCIAL_EMOTIONAL = "SOCIAL_EMOTIONAL"
    METACOGNITION = "METACOGNITION"
    CHARACTER_VALUES = "CHARACTER_VALUES"


class SkillLevel(str, Enum):
    EMERGING = "EMERGING"
    DEVELOPING = "DEVELOPING"
    PROFICIENT = "PROFICIENT"
    ADVANCED = "ADVANCED"


class MaturityBand(str, Enum):
    UNCLASSIFIED = "UNCLASSIFIED"
    DISCOVERING = "DISCOVERING"
    PRACTICING = "PRACTICING"
    CONSISTENT = "CONSISTENT"
    INDEPENDENT = "INDEPENDENT"
    ADAPTIVE = "ADAPTIVE"


class Trend(str, Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    NEEDS_ATTENTION = "NEEDS_ATTENTION"


class ConfidenceBand(str, Enum):
    EMERGING = "EMERGING"
    MODERATE = "MODERATE"
    STRONG = "STRONG"


class ActivityKind(str, Enum):
    ASSESSMENT = "assessment"
    QUEST = "quest"
    ACTIVITY = "activity"


class QuestType(str, Enum):
    MINI_GAME = "mini_game"
    REFLECTION = "reflection"
    CHOICE_SCENARIO = "choice_scenario"


CATEGORIES: List[SkillCategory] = list(SkillCategory)
SUPPORTED_GRADES: Tuple[int, ...] = (8, 9, 10)

CATEGORY_LABELS: Dict[SkillCategory, str] = {
    SkillCategory.COGNITIVE_REASONING: "Cognitive Reasoning",
    SkillCategory.CREATIVITY: "Creativity",
    SkillCategory.LANGUAGE: "Language & Communication",
    SkillCategory.MEMORY: "Memory",
    SkillCategory.ATTENTION: "Attention & Focus",
    SkillCategory.PLANNING: "Planning & Organization",
    SkillCategory.SOCIAL_EMOTIONAL: "Social-Emotional",
    SkillCategory.METACOGNITION: "Metacognition",
    SkillCategory.CHARACTER_VALUES: "Character & Values",
}

_BAND_ORDER: Dict[MaturityBand, int] = {band: idx for idx, band in enumerate(MaturityBand)}
_CONFIDENCE_ORDER: Dict[ConfidenceBand, int] = {band: idx for idx, band in enumerate(ConfidenceBand)}


def parse_category(value: object) -> SkillCategory:
    """Coerce a raw key into a ``SkillCategory`` or raise ``InvalidCategory``."""
    if isinstance(value, SkillCategory):
        return value
    if isinstance(value, str):
        key = value.strip().upper()
        try:
            return SkillCategory(key)
        except ValueError:
            pass
    raise InvalidCategory(value)


def clamp_score(score: float) -> float:
    return max(float(cfg_defaults.SCORE_MIN), min(float(cfg_defaults.SCORE_MAX), float(score)))


def level_for_score(score: float, breakpoints: Tuple[int, int, int] | None = None) -> SkillLevel:
    advanced, proficient, developing = breakpoints or cfg_defaults.LEVEL_BREAKPOINTS
    s = float(score)
    if s >= advanced: return SkillLevel.ADVANCED
    if s >= proficient: return SkillLevel.PROFICIENT
    if s >= developing: return SkillLevel.DEVELOPING
    return SkillLevel.EMERGING


def maturity_band_for_score(
    score: Optional[float],
    breakpoints: Tuple[int, int, int, int] | None = None,
) -> MaturityBand:
    if score is None:
        return MaturityBand.UNCLASSIFIED
    adaptive, independent, consistent, practicing = breakpoints or cfg_defaults.BAND_BREAKPOINTS
    s = float(score)
    if s >= adaptive: return MaturityBand.ADAPTIVE
    if s >= independent: return MaturityBand.INDEPENDENT
    if s >= consistent: return MaturityBand.CONSISTENT
    if s >= practicing: return MaturityBand.PRACTICING
    return MaturityBand.DISCOVERING


def band_rank(band: MaturityBand) -> int:
    return _BAND_ORDER[band]


def confidence_rank(band: ConfidenceBand) -> int:
    return _CONFIDENCE_ORDER[band]


# assessment games and the categories each one measures
ASSESSMENT_GAMES: Dict[str, Dict[str, object]] = {
    "pattern_forge": {
        "name": "Pattern Forge",
        "categories": (SkillCategory.COGNITIVE_REASONING,),
    },
    "many_ways_builder": {
        "name": "Many Ways Builder",
        "categories": (SkillCategory.CREATIVITY,),
    },
    "story_lens": {
        "name": "Story Lens",
        "categories": (SkillCategory.LANGUAGE, SkillCategory.CREATIVITY),
    },
    "visual_vault": {
        "name": "Visual Vault",
        "categories": (SkillCategory.MEMORY,),
    },
    "focus_sprint": {
        "name": "Focus Sprint",
        "categories": (SkillCategory.ATTENTION,),
    },
    "mission_planner": {
        "name": "Mission Planner",
        "categories": (SkillCategory.PLANNING,),
    },
    "dilemma_compass": {
        "name": "Dilemma Compass",
        "categories": (SkillCategory.SOCIAL_EMOTIONAL, SkillCategory.CHARACTER_VALUES),
    },
    "replay_reflect": {
        "name": "Replay & Reflect",
        "categories": (SkillCategory.METACOGNITION,),
    },
}


def game_categories(game_id: str) -> Tuple[SkillCategory, ...]:
    game = ASSESSMENT_GAMES.get(game_id)
    if not game:
        return ()
    return tuple(game["categories"])  # type: ignore[arg-type]


def game_name(game_id: str) -> str:
    game = ASSESSMENT_GAMES.get(game_id)
    return str(game["name"]) if game else game_id
