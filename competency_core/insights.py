# competency_core/insights.py
from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .config import EngineSettings
from .gating import (
    can_show_gentle_observations,
    can_show_progress_narrative,
    check_diversity_gate,
    check_global_gate,
    gate_state,
    gate_talent_signals,
    remaining_activities,
)
from .signals import SIGNALS_BY_ID, generate_talent_signals, summarize_activity_mix
from .taxonomy import CATEGORY_LABELS, SkillCategory
from .types import CompletedAttempt, SkillScore, TalentSignal


def calculate_streak(completed: Iterable[datetime | date], today: date) -> int:
    """Consecutive days with activity, ending today or yesterday."""
    days = sorted({d.date() if isinstance(d, datetime) else d for d in completed}, reverse=True)
    if not days:
        return 0
    if days[0] not in (today, today - timedelta(days=1)):
        return 0
    streak = 1
    for prev, nxt in zip(days, days[1:]):
        if (prev - nxt).days != 1:
            break
        streak += 1
    return streak


def gentle_observations(unlocked: Sequence[TalentSignal], cap: int) -> List[str]:
    # descriptive only, never advice
    out = []
    for sig in unlocked:
        definition = SIGNALS_BY_ID.get(sig.id)
        if definition:
            out.append(definition.observation)
    return out[:cap]


def support_actions(unlocked: Sequence[TalentSignal], cap: int) -> List[Dict[str, object]]:
    out: List[Dict[str, object]] = []
    for sig in unlocked[:cap]:
        if sig.support_actions:
            out.append({"action": sig.support_actions[0], "mapped_to_signal": sig.id, "low_effort": True})
    return out[:cap]


def _labels(cats: Iterable[SkillCategory]) -> str:
    names = [CATEGORY_LABELS[c].lower() for c in cats]
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def progress_narrative(
    attempts: Sequence[CompletedAttempt],
    skill_scores: Mapping[SkillCategory, SkillScore],
    unlocked: Sequence[TalentSignal],
) -> Dict[str, str]:
    ordered = sorted(attempts, key=lambda a: (a.completed_at, a.id))
    early: List[SkillCategory] = []
    for a in ordered[:5]:
        for cat in a.normalized_scores:
            if cat not in early:
                early.append(cat)
    lowest = sorted(skill_scores.values(), key=lambda r: (r.score, r.category.value))[:2]
    then = (
        f"Early activities explored {_labels(early[:3])}"
        if early
        else "Early activities showed curiosity and willingness to try new things"
    )
    now = "Current patterns indicate growing confidence in " + " and ".join(
        s.name.lower() for s in unlocked
    )
    nxt = (
        f"The next few weeks focus on building consistency in {_labels(r.category for r in lowest)}"
        if lowest
        else "The next few weeks focus on building consistency"
    )
    return {"then": then, "now": now, "next": nxt}


def build_parent_insights(
    attempts: Sequence[CompletedAttempt],
    skill_scores: Mapping[SkillCategory, SkillScore],
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, object]:
    """
    Parent dashboard payload. ``confident_insights.state`` separates
    NOT_YET_UNLOCKED (too few activities) from GENERATED_EMPTY (enough
    activities, nothing confident yet).
    """
    s = settings or EngineSettings.from_cfg(None)
    mix = summarize_activity_mix(attempts, skill_scores)
    total = int(mix["total"])  # type: ignore[arg-type]
    signals = generate_talent_signals(attempts, skill_scores, s)
    gated = gate_talent_signals(signals, total, s)

    week_ago = now - timedelta(days=7)
    this_week = [a for a in attempts if week_ago <= a.completed_at <= now]

    narrative = None
    if can_show_progress_narrative(total, gated.unlocked, s):
        narrative = progress_narrative(attempts, skill_scores, gated.unlocked)

    return {
        "at_a_glance": {
            "total_completed": total,
            "completed_by_kind": mix["by_kind"],
            "activities_this_week": len(this_week),
            "minutes_this_week": round(sum(a.time_spent_sec for a in this_week) / 60),
            "streak_days": calculate_streak([a.completed_at for a in attempts], now.date()),
        },
        "confident_insights": {
            "global_gate_met": check_global_gate(total, s),
            "diversity_gate_met": check_diversity_gate(
                int(mix["distinct_types"]), int(mix["distinct_branches"]), s  # type: ignore[arg-type]
            ),
            "remaining_activities": remaining_activities(total, s),
            "state": gate_state(total, gated.unlocked, s).value,
            "signals": [sig.to_dict() for sig in gated.unlocked],
            "locked_count": len(gated.locked),
        },
        "gentle_observations": {
            "available": can_show_gentle_observations(total, gated.unlocked, s),
            "items": gentle_observations(gated.unlocked, s.max_gentle_observations)
            if can_show_gentle_observations(total, gated.unlocked, s)
            else [],
        },
        "progress_narrative": narrative,
        "support_actions": support_actions(gated.unlocked, s.max_support_actions),
    }
