"""Deterministic talent-signal derivation.

Every number on a generated signal can be re-derived from the attempts and
skill histories it was computed from: ``observed_count`` and
``contexts_count`` come from the attempts listed in ``evidence_attempt_ids``,
and ``stability_score`` from the pooled history of the signal's categories.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from statistics import pvariance
from typing import Dict, List, Mapping, Sequence, Tuple

from .config import EngineSettings
from .taxonomy import SkillCategory
from .types import CompletedAttempt, SkillScore, TalentSignal

log = logging.getLogger(__name__)

C = SkillCategory


@dataclass(frozen=True)
class SignalDefinition:
    id: str
    name: str
    categories: Tuple[SkillCategory, ...]
    explanation: str
    observation: str
    support_actions: Tuple[str, ...]
    min_observations: int = 5
    min_contexts: int = 2
    min_stability: float = 0.6


SIGNAL_CATALOGUE: Tuple[SignalDefinition, ...] = (
    SignalDefinition(
        id="pattern-recognition",
        name="Pattern Recognition",
        categories=(C.COGNITIVE_REASONING,),
        explanation="Shows ability to identify patterns and sequences",
        observation="We're noticing a preference for visual-spatial tasks over text-heavy activities",
        support_actions=(
            "Encourage puzzle games and pattern-based activities",
            "Notice when they naturally spot patterns in daily life",
        ),
    ),
    SignalDefinition(
        id="creative-problem-solving",
        name="Creative Problem-Solving",
        categories=(C.CREATIVITY,),
        explanation="Demonstrates creative approaches to challenges",
        observation=(
            "Across several activities, there's a pattern of persistence when the "
            "challenge feels personally meaningful"
        ),
        support_actions=(
            "Provide open-ended challenges that allow multiple solutions",
            "Celebrate creative approaches, not just correct answers",
        ),
    ),
    SignalDefinition(
        id="planning-organization",
        name="Planning & Organization",
        categories=(C.PLANNING,),
        explanation="Shows ability to organize thoughts and plan ahead",
        observation="We're seeing early signs of planning behavior, especially when given clear goals",
        support_actions=(
            "Help break down larger tasks into smaller steps",
            "Model planning by talking through your own process",
        ),
    ),
    SignalDefinition(
        id="sustained-focus",
        name="Sustained Focus",
        categories=(C.ATTENTION,),
        explanation="Keeps attention on a task through to the end",
        observation="Longer activities are usually finished once started",
        support_actions=(
            "Agree on short, distraction-free work blocks",
            "Point out when they stayed with a task to the end",
        ),
    ),
    SignalDefinition(
        id="reflective-thinking",
        name="Reflective Thinking",
        categories=(C.METACOGNITION,),
        explanation="Looks back on their own thinking and adjusts",
        observation="Reflections after activities often mention what they would change next time",
        support_actions=(
            "Ask what they would do differently after a task",
            "Share how you review your own decisions",
        ),
    ),
    SignalDefinition(
        id="collaborative-empathy",
        name="Collaborative Empathy",
        categories=(C.SOCIAL_EMOTIONAL, C.CHARACTER_VALUES),
        explanation="Considers other people's feelings when making choices",
        observation="In choice scenarios, decisions tend to weigh how others are affected",
        support_actions=(
            "Talk through everyday dilemmas together",
            "Notice and name kind choices when they happen",
        ),
        min_contexts=3,
    ),
    SignalDefinition(
        id="expressive-communication",
        name="Expressive Communication",
        categories=(C.LANGUAGE,),
        explanation="Explains ideas clearly in their own words",
        observation="Written answers are getting more detailed over time",
        support_actions=(
            "Ask them to explain something they learned today",
            "Read together and discuss the story",
        ),
    ),
)

SIGNALS_BY_ID: Dict[str, SignalDefinition] = {d.id: d for d in SIGNAL_CATALOGUE}


def stability_from_scores(scores: Sequence[float], variance_scale: float) -> float:
    """Map score variance onto [0, 1]; 1.0 means perfectly steady."""
    if len(scores) < 2:
        return 0.0
    var = pvariance([float(s) for s in scores])
    return 1.0 / (1.0 + var / float(variance_scale))


def _derive(
    definition: SignalDefinition,
    attempts: Sequence[CompletedAttempt],
    skill_scores: Mapping[SkillCategory, SkillScore],
    settings: EngineSettings,
) -> TalentSignal:
    # only categories with a stored history can contribute evidence
    cats = {c for c in definition.categories if c in skill_scores}
    contributing = [
        a for a in attempts if cats.intersection(a.normalized_scores)
    ]
    contributing.sort(key=lambda a: (a.completed_at, a.id))
    contexts = {a.activity_id for a in contributing}
    pooled: List[float] = []
    for cat in definition.categories:
        rec = skill_scores.get(cat)
        if rec is not None:
            pooled.extend(p.score for p in rec.history)
    stability = stability_from_scores(pooled, settings.stability_variance_scale)
    return TalentSignal(
        id=definition.id,
        name=definition.name,
        categories=definition.categories,
        explanation=definition.explanation,
        min_observations=definition.min_observations,
        min_contexts=definition.min_contexts,
        min_stability=definition.min_stability,
        observed_count=len(contributing),
        contexts_count=len(contexts),
        stability_score=stability,
        support_actions=definition.support_actions,
        evidence_attempt_ids=tuple(a.id for a in contributing),
    )


def generate_talent_signals(
    attempts: Sequence[CompletedAttempt],
    skill_scores: Mapping[SkillCategory, SkillScore],
    settings: EngineSettings | None = None,
    catalogue: Sequence[SignalDefinition] = SIGNAL_CATALOGUE,
) -> List[TalentSignal]:
    """Build one candidate signal per catalogue entry with a scored category.

    Signals come back in catalogue order and un-gated; pass them to
    ``gating.gate_talent_signals`` before showing anything.
    """
    s = settings or EngineSettings.from_cfg(None)
    out: List[TalentSignal] = []
    for definition in catalogue:
        if not any(cat in skill_scores for cat in definition.categories):
            continue
        sig = _derive(definition, attempts, skill_scores, s)
        log.debug(
            "signal %s observed=%d contexts=%d stability=%.3f",
            sig.id,
            sig.observed_count,
            sig.contexts_count,
            sig.stability_score,
        )
        out.append(sig)
    return out


def summarize_activity_mix(
    attempts: Sequence[CompletedAttempt],
    skill_scores: Mapping[SkillCategory, SkillScore],
) -> Dict[str, object]:
    """Counts the gates need: totals per kind, distinct types, skill branches."""
    by_kind: Dict[str, int] = {}
    for a in attempts:
        by_kind[a.kind.value] = by_kind.get(a.kind.value, 0) + 1
    return {
        "total": len(attempts),
        "by_kind": by_kind,
        "distinct_types": len({a.activity_id for a in attempts}),
        "distinct_branches": len(skill_scores),
    }
