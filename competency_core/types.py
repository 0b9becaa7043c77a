from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .config import EngineSettings
from .taxonomy import (
    ActivityKind,
    ConfidenceBand,
    MaturityBand,
    QuestType,
    SkillCategory,
    SkillLevel,
    Trend,
    level_for_score,
    maturity_band_for_score,
)


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: datetime
    score: float


@dataclass
class SkillScore:
    """Current score for one (student, category) plus its append-only log."""
    student_id: str
    category: SkillCategory
    score: float
    trend: Trend = Trend.STABLE
    evidence: List[str] = field(default_factory=list)
    history: List[HistoryPoint] = field(default_factory=list)

    @property
    def level(self) -> SkillLevel:
        return level_for_score(self.score)

    @property
    def maturity_band(self) -> MaturityBand:
        return maturity_band_for_score(self.score)

    def to_dict(self, settings: EngineSettings | None = None) -> Dict[str, Any]:
        level = self.level
        band = self.maturity_band
        if settings is not None:
            level = level_for_score(self.score, settings.level_breakpoints)
            band = maturity_band_for_score(self.score, settings.band_breakpoints)
        return {
            "student_id": self.student_id,
            "category": self.category.value,
            "score": self.score,
            "level": level.value,
            "maturity_band": band.value,
            "trend": self.trend.value,
            "evidence": list(self.evidence),
            "history": [
                {"timestamp": p.timestamp.isoformat(), "score": p.score} for p in self.history
            ],
        }

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "SkillScore":
        return SkillScore(
            student_id=str(raw["student_id"]),
            category=SkillCategory(raw["category"]),
            score=float(raw["score"]),
            trend=Trend(raw.get("trend", Trend.STABLE.value)),
            evidence=[str(e) for e in raw.get("evidence", [])],
            history=[
                HistoryPoint(datetime.fromisoformat(p["timestamp"]), float(p["score"]))
                for p in raw.get("history", [])
            ],
        )


@dataclass(frozen=True)
class CompletedAttempt:
    id: str
    student_id: str
    kind: ActivityKind
    activity_id: str
    completed_at: datetime
    normalized_scores: Dict[SkillCategory, float] = field(default_factory=dict)
    raw_scores: Dict[str, Any] = field(default_factory=dict)
    time_spent_sec: int = 0
    hints_used: int = 0
    grade: Optional[int] = None
    activity_name: Optional[str] = None
    skill_signals: Tuple[SkillCategory, ...] = ()


@dataclass
class SkillScoreUpdate:
    category: SkillCategory
    before: Optional[float]
    after: float
    trend: Trend


@dataclass(frozen=True)
class TalentSignal:
    id: str
    name: str
    categories: Tuple[SkillCategory, ...]
    explanation: str
    min_observations: int
    min_contexts: int
    min_stability: float
    observed_count: int = 0
    contexts_count: int = 0
    stability_score: float = 0.0
    confidence: ConfidenceBand = ConfidenceBand.EMERGING
    evidence_summary: str = ""
    support_actions: Tuple[str, ...] = ()
    evidence_attempt_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "categories": [c.value for c in self.categories],
            "confidence": self.confidence.value,
            "explanation": self.explanation,
            "evidence_summary": self.evidence_summary,
            "min_observations": self.min_observations,
            "min_contexts": self.min_contexts,
            "min_stability": self.min_stability,
            "observed_count": self.observed_count,
            "contexts_count": self.contexts_count,
            "stability_score": round(self.stability_score, 4),
            "support_actions": list(self.support_actions),
            "evidence_attempt_ids": list(self.evidence_attempt_ids),
        }


@dataclass
class GateResult:
    unlocked: List[TalentSignal] = field(default_factory=list)
    locked: List[TalentSignal] = field(default_factory=list)


@dataclass
class ClassFocusProfile:
    id: str
    tenant_id: str
    teacher_id: str
    boosts: Dict[SkillCategory, float]
    grade: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    notes: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class QuestCandidate:
    id: str
    type: QuestType
    title: str
    primary_skills: Tuple[SkillCategory, ...]
    description: str = ""
    estimated_minutes: int = 5
    grade_applicability: FrozenSet[int] = frozenset()
    skill_signals: Tuple[SkillCategory, ...] = ()


@dataclass(frozen=True)
class PriorityBreakdown:
    base: float
    boost: float
    boosted_skill: Optional[SkillCategory]
    intent_factor: float
    final: float


@dataclass(frozen=True)
class RankedQuest:
    quest: QuestCandidate
    priority: float
    breakdown: PriorityBreakdown


@dataclass(frozen=True)
class ImprovementSuggestion:
    skill: SkillCategory
    weight: float
    current_score: float
    priority: float
