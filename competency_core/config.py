from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from typing import Any, Mapping, Tuple


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_ints(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    """Comma-separated ints, e.g. ``LEVEL_BREAKPOINTS=85,65,45``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        values = tuple(int(part.strip()) for part in raw.split(","))
    except ValueError:
        return default
    return values if len(values) == len(default) else default


SCORE_MIN: int = 0
SCORE_MAX: int = 100
DEFAULT_SKILL_SCORE: int = 50

# level breakpoints: ADVANCED, PROFICIENT, DEVELOPING (EMERGING below)
LEVEL_BREAKPOINTS: Tuple[int, int, int] = (80, 60, 40)
# maturity breakpoints: ADAPTIVE, INDEPENDENT, CONSISTENT, PRACTICING (DISCOVERING below)
BAND_BREAKPOINTS: Tuple[int, int, int, int] = (90, 80, 60, 40)
EXPECTATION_BAND_TOLERANCE: int = 1

TREND_THRESHOLD: float = 5.0

GLOBAL_MIN: int = 10
TYPE_MIN: int = 3
BRANCH_MIN: int = 4
MODERATE_MULTIPLE: float = 1.2
STRONG_MULTIPLE: float = 1.5
STRONG_MIN_TOTAL_ACTIVITIES: int = 20
MAX_UNLOCKED_SIGNALS: int = 5
NARRATIVE_MIN_ACTIVITIES: int = 20
STABILITY_VARIANCE_SCALE: float = 400.0

MAX_GENTLE_OBSERVATIONS: int = 4
MAX_SUPPORT_ACTIONS: int = 5

CLASS_FOCUS_MAX_BOOST: float = 0.20
INTENT_MULTIPLIER: float = 1.2
WEAK_SIGNAL_WEIGHT: float = 0.3
WEAK_SIGNAL_WINDOW_DAYS: int = 14
DEFAULT_QUEST_COUNT: int = 5

PLAN_FOCUS_MAX: int = 3
PLAN_MINUTES_PER_QUEST: int = 5
PLAN_MAX_READINESS_DELTA: float = 5.0

DEBUG_CLASS_FOCUS: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "quest_id",
    "skill",
    "base",
    "boost",
    "intent",
    "final",
)
# // env overrides for staging/ops; defaults remain conservative.
GLOBAL_MIN = _env_int("GLOBAL_MIN", GLOBAL_MIN)
TYPE_MIN = _env_int("TYPE_MIN", TYPE_MIN)
BRANCH_MIN = _env_int("BRANCH_MIN", BRANCH_MIN)
NARRATIVE_MIN_ACTIVITIES = _env_int("NARRATIVE_MIN_ACTIVITIES", NARRATIVE_MIN_ACTIVITIES)
LEVEL_BREAKPOINTS = _env_ints("LEVEL_BREAKPOINTS", LEVEL_BREAKPOINTS)
BAND_BREAKPOINTS = _env_ints("BAND_BREAKPOINTS", BAND_BREAKPOINTS)
TREND_THRESHOLD = _env_float("TREND_THRESHOLD", TREND_THRESHOLD)
CLASS_FOCUS_MAX_BOOST = _env_float("CLASS_FOCUS_MAX_BOOST", CLASS_FOCUS_MAX_BOOST)
INTENT_MULTIPLIER = _env_float("INTENT_MULTIPLIER", INTENT_MULTIPLIER)
WEAK_SIGNAL_WEIGHT = _env_float("WEAK_SIGNAL_WEIGHT", WEAK_SIGNAL_WEIGHT)
WEAK_SIGNAL_WINDOW_DAYS = _env_int("WEAK_SIGNAL_WINDOW_DAYS", WEAK_SIGNAL_WINDOW_DAYS)
DEBUG_CLASS_FOCUS = _env_bool("DEBUG_CLASS_FOCUS", False)


def load_config() -> dict:
    """Read optional JSON overrides (``COMPETENCY_CONFIG`` or ./config.json)."""
    cfg: dict = {}
    p = pathlib.Path(os.environ.get("COMPETENCY_CONFIG", "config.json"))
    if p.exists():
        try:
            cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            cfg = {}
    if not isinstance(cfg, dict):
        return {}
    return cfg


def _breakpoints(value: Any, default: Tuple[int, ...]) -> Tuple[int, ...]:
    points = tuple(int(v) for v in value)
    if len(points) != len(default):
        raise ValueError(f"expected {len(default)} breakpoints, got {len(points)}")
    return points


@dataclass(frozen=True)
class EngineSettings:
    default_skill_score: int
    trend_threshold: float
    global_min: int
    type_min: int
    branch_min: int
    moderate_multiple: float
    strong_multiple: float
    strong_min_total: int
    max_unlocked: int
    narrative_min_activities: int
    stability_variance_scale: float
    max_gentle_observations: int
    max_support_actions: int
    class_focus_max_boost: float
    intent_multiplier: float
    weak_signal_weight: float
    weak_signal_window_days: int
    default_quest_count: int
    plan_focus_max: int
    plan_minutes_per_quest: int
    plan_max_readiness_delta: float
    level_breakpoints: Tuple[int, int, int]
    band_breakpoints: Tuple[int, int, int, int]

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None = None) -> "EngineSettings":
        def _cfg_value(name: str, default: Any) -> Any:
            if cfg is None:
                return default
            if isinstance(cfg, Mapping) and name in cfg:
                return cfg[name]
            return getattr(cfg, name, default) if hasattr(cfg, name) else default

        return EngineSettings(
            default_skill_score=int(_cfg_value("DEFAULT_SKILL_SCORE", DEFAULT_SKILL_SCORE)),
            trend_threshold=float(_cfg_value("TREND_THRESHOLD", TREND_THRESHOLD)),
            global_min=int(_cfg_value("GLOBAL_MIN", GLOBAL_MIN)),
            type_min=int(_cfg_value("TYPE_MIN", TYPE_MIN)),
            branch_min=int(_cfg_value("BRANCH_MIN", BRANCH_MIN)),
            moderate_multiple=float(_cfg_value("MODERATE_MULTIPLE", MODERATE_MULTIPLE)),
            strong_multiple=float(_cfg_value("STRONG_MULTIPLE", STRONG_MULTIPLE)),
            strong_min_total=int(_cfg_value("STRONG_MIN_TOTAL_ACTIVITIES", STRONG_MIN_TOTAL_ACTIVITIES)),
            max_unlocked=int(_cfg_value("MAX_UNLOCKED_SIGNALS", MAX_UNLOCKED_SIGNALS)),
            narrative_min_activities=int(_cfg_value("NARRATIVE_MIN_ACTIVITIES", NARRATIVE_MIN_ACTIVITIES)),
            stability_variance_scale=float(_cfg_value("STABILITY_VARIANCE_SCALE", STABILITY_VARIANCE_SCALE)),
            max_gentle_observations=int(_cfg_value("MAX_GENTLE_OBSERVATIONS", MAX_GENTLE_OBSERVATIONS)),
            max_support_actions=int(_cfg_value("MAX_SUPPORT_ACTIONS", MAX_SUPPORT_ACTIONS)),
            class_focus_max_boost=float(_cfg_value("CLASS_FOCUS_MAX_BOOST", CLASS_FOCUS_MAX_BOOST)),
            intent_multiplier=float(_cfg_value("INTENT_MULTIPLIER", INTENT_MULTIPLIER)),
            weak_signal_weight=float(_cfg_value("WEAK_SIGNAL_WEIGHT", WEAK_SIGNAL_WEIGHT)),
            weak_signal_window_days=int(_cfg_value("WEAK_SIGNAL_WINDOW_DAYS", WEAK_SIGNAL_WINDOW_DAYS)),
            default_quest_count=int(_cfg_value("DEFAULT_QUEST_COUNT", DEFAULT_QUEST_COUNT)),
            plan_focus_max=int(_cfg_value("PLAN_FOCUS_MAX", PLAN_FOCUS_MAX)),
            plan_minutes_per_quest=max(1, int(_cfg_value("PLAN_MINUTES_PER_QUEST", PLAN_MINUTES_PER_QUEST))),
            plan_max_readiness_delta=float(_cfg_value("PLAN_MAX_READINESS_DELTA", PLAN_MAX_READINESS_DELTA)),
            level_breakpoints=_breakpoints(_cfg_value("LEVEL_BREAKPOINTS", LEVEL_BREAKPOINTS), LEVEL_BREAKPOINTS),
            band_breakpoints=_breakpoints(_cfg_value("BAND_BREAKPOINTS", BAND_BREAKPOINTS), BAND_BREAKPOINTS),
        )


def default_settings() -> EngineSettings:
    return EngineSettings.from_cfg(load_config())
