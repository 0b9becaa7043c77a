from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from competency_core.aggregator import ScoreAggregator
from competency_core.taxonomy import ActivityKind, QuestType, SkillCategory
from competency_core.types import CompletedAttempt, QuestCandidate, TalentSignal

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(minutes=1)
        return current


def build_attempts(
    *,
    student_id: str = "stu-1",
    category: SkillCategory = SkillCategory.COGNITIVE_REASONING,
    scores: list[float] | None = None,
    activity_ids: list[str] | None = None,
    kind: ActivityKind = ActivityKind.ASSESSMENT,
    start: datetime = T0,
    prefix: str = "att",
    skill_signals: tuple[SkillCategory, ...] = (),
) -> list[CompletedAttempt]:
    """Create a deterministic run of attempts, one per day, cycling activity ids."""

    values = scores if scores is not None else [70.0, 72.0, 71.0, 70.0, 73.0, 72.0]
    ids = activity_ids or ["pattern_forge"]
    out: list[CompletedAttempt] = []
    for idx, value in enumerate(values):
        out.append(
            CompletedAttempt(
                id=f"{prefix}-{idx}",
                student_id=student_id,
                kind=kind,
                activity_id=ids[idx % len(ids)],
                completed_at=start + timedelta(days=idx),
                normalized_scores={category: float(value)},
                time_spent_sec=300,
                grade=8,
                skill_signals=skill_signals,
            )
        )
    return out


def make_signal(
    sid: str = "sig",
    *,
    observed: int = 5,
    contexts: int = 2,
    stability: float = 0.6,
    min_obs: int = 5,
    min_ctx: int = 2,
    min_stab: float = 0.6,
) -> TalentSignal:
    return TalentSignal(
        id=sid,
        name=sid.title(),
        categories=(SkillCategory.COGNITIVE_REASONING,),
        explanation="test signal",
        min_observations=min_obs,
        min_contexts=min_ctx,
        min_stability=min_stab,
        observed_count=observed,
        contexts_count=contexts,
        stability_score=stability,
        support_actions=(f"support {sid}",),
    )


def make_quest(
    qid: str,
    skills: tuple[SkillCategory, ...],
    *,
    qtype: QuestType = QuestType.MINI_GAME,
    grades: frozenset[int] = frozenset({8, 9, 10}),
) -> QuestCandidate:
    return QuestCandidate(id=qid, type=qtype, title=qid, primary_skills=skills, grade_applicability=grades)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def aggregator(clock) -> ScoreAggregator:
    return ScoreAggregator(clock=clock)
