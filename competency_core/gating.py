"""Evidence gates that decide what may be shown to parents.

Nothing here mutates its inputs: banded signals are returned as copies, so
calling ``gate_talent_signals`` twice on the same list gives the same answer.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import List, Sequence

from .config import EngineSettings
from .taxonomy import ConfidenceBand, confidence_rank
from .types import GateResult, TalentSignal

log = logging.getLogger(__name__)


class GateState(str, Enum):
    NOT_YET_UNLOCKED = "NOT_YET_UNLOCKED"
    GENERATED_EMPTY = "GENERATED_EMPTY"
    UNLOCKED = "UNLOCKED"


def _settings(settings: EngineSettings | None) -> EngineSettings:
    return settings or EngineSettings.from_cfg(None)


def check_global_gate(total_completed: int, settings: EngineSettings | None = None) -> bool:
    return int(total_completed) >= _settings(settings).global_min


def check_diversity_gate(
    distinct_types: int,
    distinct_branches: int,
    settings: EngineSettings | None = None,
) -> bool:
    s = _settings(settings)
    return int(distinct_types) >= s.type_min and int(distinct_branches) >= s.branch_min


def remaining_activities(total_completed: int, settings: EngineSettings | None = None) -> int:
    return max(0, _settings(settings).global_min - int(total_completed))


def _meets(signal: TalentSignal, multiple: float) -> bool:
    return (
        signal.observed_count >= signal.min_observations * multiple
        and signal.contexts_count >= signal.min_contexts * multiple
        and signal.stability_score >= min(1.0, signal.min_stability * multiple)
    )


def signal_meets_thresholds(signal: TalentSignal) -> bool:
    return _meets(signal, 1.0)


def confidence_band(
    signal: TalentSignal,
    total_completed: int,
    settings: EngineSettings | None = None,
) -> ConfidenceBand:
    """Band an evidence-backed signal by how far it clears its minimums."""
    s = _settings(settings)
    if not _meets(signal, 1.0):
        return ConfidenceBand.EMERGING
    if _meets(signal, s.strong_multiple) and total_completed >= s.strong_min_total:
        return ConfidenceBand.STRONG
    if _meets(signal, s.moderate_multiple):
        return ConfidenceBand.MODERATE
    return ConfidenceBand.EMERGING


def evidence_summary(observed: int, contexts: int) -> str:
    noun = "activity" if observed == 1 else "activities"
    if contexts >= 3:
        return f"observed across {observed} {noun} in {contexts} different contexts"
    return f"observed across {observed} {noun}"


def gate_talent_signals(
    signals: Sequence[TalentSignal],
    total_completed: int,
    settings: EngineSettings | None = None,
) -> GateResult:
    """Split signals into unlocked and locked.

    Nothing unlocks while the global gate is unmet. Unlocked signals are
    ordered by confidence band (STRONG first), then observed count, then
    input order, and capped at ``max_unlocked``.
    """
    s = _settings(settings)
    result = GateResult()
    if not check_global_gate(total_completed, s):
        result.locked = [replace(sig, confidence=ConfidenceBand.EMERGING) for sig in signals]
        return result

    banded: List[tuple[int, TalentSignal]] = []
    for idx, sig in enumerate(signals):
        if signal_meets_thresholds(sig):
            band = confidence_band(sig, total_completed, s)
            banded.append(
                (
                    idx,
                    replace(
                        sig,
                        confidence=band,
                        evidence_summary=evidence_summary(sig.observed_count, sig.contexts_count),
                    ),
                )
            )
        else:
            result.locked.append(replace(sig, confidence=ConfidenceBand.EMERGING))

    banded.sort(key=lambda pair: (-confidence_rank(pair[1].confidence), -pair[1].observed_count, pair[0]))
    if len(banded) > s.max_unlocked:
        log.debug("unlocked signals capped %d -> %d", len(banded), s.max_unlocked)
    result.unlocked = [sig for _, sig in banded[: s.max_unlocked]]
    return result


def gate_state(total_completed: int, unlocked: Sequence[TalentSignal], settings: EngineSettings | None = None) -> GateState:
    if not check_global_gate(total_completed, settings):
        return GateState.NOT_YET_UNLOCKED
    if not unlocked:
        return GateState.GENERATED_EMPTY
    return GateState.UNLOCKED


def can_show_gentle_observations(
    total_completed: int,
    unlocked: Sequence[TalentSignal],
    settings: EngineSettings | None = None,
) -> bool:
    return check_global_gate(total_completed, settings) and len(unlocked) > 0


def can_show_progress_narrative(
    total_completed: int,
    unlocked: Sequence[TalentSignal],
    settings: EngineSettings | None = None,
) -> bool:
    s = _settings(settings)
    return (
        can_show_gentle_observations(total_completed, unlocked, s)
        and int(total_completed) >= s.narrative_min_activities
    )
