"""Single writer for per-(student, category) skill scores.

``ScoreAggregator`` owns the read-modify-write of a ``SkillScore``. Calls for
the same (student, category) are serialized through ``KeyedLocks`` so no
history point or evidence label is lost when attempts complete concurrently.
The latest observation replaces the score; older observations survive only
in the history and evidence logs.
"""
from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

from .config import EngineSettings
from .taxonomy import ActivityKind, SkillCategory, Trend, clamp_score, game_name, parse_category
from .types import CompletedAttempt, HistoryPoint, SkillScore, SkillScoreUpdate

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SkillScoreStore(Protocol):
    def get(self, student_id: str, category: SkillCategory) -> Optional[SkillScore]: ...

    def put(self, record: SkillScore) -> None: ...

    def list_for_student(self, student_id: str) -> List[SkillScore]: ...


class InMemorySkillScoreStore:
    """Dict-backed store; hands out copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, SkillCategory], SkillScore] = {}

    def get(self, student_id: str, category: SkillCategory) -> Optional[SkillScore]:
        row = self._rows.get((student_id, category))
        return copy.deepcopy(row) if row is not None else None

    def put(self, record: SkillScore) -> None:
        self._rows[(record.student_id, record.category)] = copy.deepcopy(record)

    def list_for_student(self, student_id: str) -> List[SkillScore]:
        rows = [copy.deepcopy(r) for (sid, _), r in self._rows.items() if sid == student_id]
        rows.sort(key=lambda r: r.category.value)
        return rows


class KeyedLocks:
    """One lock per key, dropped again once no caller holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: Dict[Hashable, List[Any]] = {}

    def _acquire_entry(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


def classify_trend(history: Sequence[HistoryPoint], threshold: float) -> Trend:
    """Compare the two most recent history points."""
    if len(history) < 2:
        return Trend.STABLE
    delta = history[-1].score - history[-2].score
    if delta >= threshold:
        return Trend.IMPROVING
    if -delta >= threshold:
        return Trend.NEEDS_ATTENTION
    return Trend.STABLE


def normalize_attempt_scores(
    answers: Sequence[Mapping[str, Any]],
    target_categories: Iterable[object],
    time_spent_sec: int = 0,
) -> Tuple[Dict[SkillCategory, float], Dict[str, Any]]:
    """Turn raw answers into per-category scores (accuracy percentage).

    Each answer mapping needs a truthy/falsy ``correct``. Returns the
    normalized scores and a raw-score summary kept on the attempt.
    """
    categories = [parse_category(c) for c in target_categories]
    total = len(answers)
    correct = sum(1 for a in answers if a.get("correct"))
    accuracy = round(correct / total * 100) if total else 0
    raw = {
        "correct": correct,
        "total": total,
        "accuracy": accuracy,
        "time_spent_sec": int(time_spent_sec),
    }
    return {cat: float(accuracy) for cat in categories}, raw


def evidence_label(attempt: CompletedAttempt) -> str:
    name = attempt.activity_name
    if not name:
        name = game_name(attempt.activity_id) if attempt.kind == ActivityKind.ASSESSMENT else attempt.activity_id
    return f"{attempt.kind.value.capitalize()}: {name}"


class ScoreAggregator:
    def __init__(
        self,
        store: SkillScoreStore | None = None,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store: SkillScoreStore = store if store is not None else InMemorySkillScoreStore()
        self.settings = settings or EngineSettings.from_cfg(None)
        self._clock = clock or utcnow
        self._locks = KeyedLocks()

    def update_skill_score(
        self,
        student_id: str,
        category: object,
        new_score: float,
        evidence_label: str,
        at: datetime | None = None,
    ) -> SkillScore:
        """Record one observation for (student, category).

        Creates the record on first observation. Otherwise the score is
        replaced and the evidence label and a history point are appended.
        Trend is left alone; see ``refresh_trend``.

        Raises
        ------
        InvalidCategory
            If ``category`` is not a taxonomy key.
        """
        cat = parse_category(category)
        with self._locks.hold((student_id, cat)):
            return self._apply(student_id, cat, new_score, evidence_label, at)

    def refresh_trend(self, student_id: str, category: object) -> Optional[SkillScore]:
        cat = parse_category(category)
        with self._locks.hold((student_id, cat)):
            return self._retrend(student_id, cat)

    def aggregate_attempt_into_skills(
        self,
        attempt: CompletedAttempt,
        target_categories: Iterable[object] | None = None,
    ) -> List[SkillScoreUpdate]:
        """Apply a completed attempt to each targeted category, then re-trend."""
        targets = (
            [parse_category(c) for c in target_categories]
            if target_categories is not None
            else list(attempt.normalized_scores)
        )
        label = evidence_label(attempt)
        updates: List[SkillScoreUpdate] = []
        for cat in targets:
            if cat not in attempt.normalized_scores:
                log.debug("attempt %s has no score for %s; skipped", attempt.id, cat.value)
                continue
            with self._locks.hold((attempt.student_id, cat)):
                prior = self.store.get(attempt.student_id, cat)
                record = self._apply(
                    attempt.student_id,
                    cat,
                    attempt.normalized_scores[cat],
                    label,
                    attempt.completed_at,
                )
                record = self._store_trend(record)
            updates.append(
                SkillScoreUpdate(
                    category=cat,
                    before=prior.score if prior else None,
                    after=record.score,
                    trend=record.trend,
                )
            )
        return updates

    def skill_scores(self, student_id: str) -> Dict[SkillCategory, SkillScore]:
        return {r.category: r for r in self.store.list_for_student(student_id)}

    # caller holds the key lock for the helpers below
    def _apply(
        self,
        student_id: str,
        cat: SkillCategory,
        new_score: float,
        label: str,
        at: datetime | None,
    ) -> SkillScore:
        score = clamp_score(new_score)
        if score != float(new_score):
            log.warning(
                "out-of-range score student=%s category=%s value=%s clamped=%s",
                student_id,
                cat.value,
                new_score,
                score,
            )
        ts = at or self._clock()
        record = self.store.get(student_id, cat)
        if record is None:
            record = SkillScore(
                student_id=student_id,
                category=cat,
                score=score,
                trend=Trend.STABLE,
                evidence=[label],
                history=[HistoryPoint(ts, score)],
            )
        else:
            last = record.history[-1].timestamp if record.history else None
            if last is not None and ts <= last:
                ts = last + timedelta(microseconds=1)
            record.score = score
            record.evidence.append(label)
            record.history.append(HistoryPoint(ts, score))
        self.store.put(record)
        log.debug(
            "skill_update student=%s category=%s score=%.1f points=%d",
            student_id,
            cat.value,
            score,
            len(record.history),
        )
        return record

    def _retrend(self, student_id: str, cat: SkillCategory) -> Optional[SkillScore]:
        record = self.store.get(student_id, cat)
        if record is None:
            return None
        return self._store_trend(record)

    def _store_trend(self, record: SkillScore) -> SkillScore:
        record.trend = classify_trend(record.history, self.settings.trend_threshold)
        self.store.put(record)
        return record
