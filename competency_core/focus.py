from __future__ import annotations

import copy
import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from .aggregator import utcnow
from .config import EngineSettings
from .prioritizer import clamp_boost
from .taxonomy import SkillCategory, parse_category
from .types import ClassFocusProfile

log = logging.getLogger(__name__)


class ClassFocusStore(Protocol):
    def list_profiles(self, tenant_id: str, teacher_id: str) -> List[ClassFocusProfile]: ...

    def save_profiles(self, tenant_id: str, teacher_id: str, profiles: List[ClassFocusProfile]) -> None: ...


class InMemoryClassFocusStore:
    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str], List[ClassFocusProfile]] = {}

    def list_profiles(self, tenant_id: str, teacher_id: str) -> List[ClassFocusProfile]:
        return copy.deepcopy(self._rows.get((tenant_id, teacher_id), []))

    def save_profiles(self, tenant_id: str, teacher_id: str, profiles: List[ClassFocusProfile]) -> None:
        self._rows[(tenant_id, teacher_id)] = copy.deepcopy(profiles)


def clamp_boosts(boosts: Mapping[object, float], settings: EngineSettings | None = None) -> Dict[SkillCategory, float]:
    return {parse_category(k): clamp_boost(v, settings) for k, v in boosts.items()}


class ClassFocusRegistry:
    """Teacher class-focus profiles, at most one active per (tenant, teacher).

    ``activate`` deactivates the current profile and stores the new one under
    a single lock, so readers never see zero or two active profiles.
    """

    def __init__(
        self,
        store: ClassFocusStore | None = None,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store: ClassFocusStore = store if store is not None else InMemoryClassFocusStore()
        self.settings = settings or EngineSettings.from_cfg(None)
        self._clock = clock or utcnow
        self._lock = threading.Lock()

    def activate(
        self,
        tenant_id: str,
        teacher_id: str,
        boosts: Mapping[object, float],
        grade: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        notes: str = "",
    ) -> ClassFocusProfile:
        clamped = clamp_boosts(boosts, self.settings)
        for key, raw in boosts.items():
            cat = parse_category(key)
            if clamped[cat] != float(raw):
                log.info("class focus boost clamped teacher=%s skill=%s %s -> %s", teacher_id, cat.value, raw, clamped[cat])
        now = self._clock()
        profile = ClassFocusProfile(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            teacher_id=teacher_id,
            boosts=clamped,
            grade=grade,
            start_date=start_date,
            end_date=end_date,
            notes=notes,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            profiles = self.store.list_profiles(tenant_id, teacher_id)
            for prev in profiles:
                if prev.is_active:
                    prev.is_active = False
                    prev.updated_at = now
            profiles.append(profile)
            self.store.save_profiles(tenant_id, teacher_id, profiles)
        return copy.deepcopy(profile)

    def deactivate(self, tenant_id: str, teacher_id: str) -> bool:
        with self._lock:
            profiles = self.store.list_profiles(tenant_id, teacher_id)
            changed = False
            for prev in profiles:
                if prev.is_active:
                    prev.is_active = False
                    prev.updated_at = self._clock()
                    changed = True
            if changed:
                self.store.save_profiles(tenant_id, teacher_id, profiles)
            return changed

    def active_for(
        self,
        tenant_id: str,
        teacher_id: str,
        grade: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ClassFocusProfile]:
        """Active profile if it applies to ``grade`` and its window is open."""
        with self._lock:
            profiles = self.store.list_profiles(tenant_id, teacher_id)
        active = [p for p in profiles if p.is_active]
        if not active:
            return None
        profile = max(active, key=lambda p: p.updated_at or p.created_at or datetime.min)
        if grade is not None and profile.grade is not None and profile.grade != int(grade):
            return None
        at = now or self._clock()
        if profile.end_date is not None and at > profile.end_date:
            return None
        if profile.start_date is not None and at < profile.start_date:
            return None
        return profile

    def history(self, tenant_id: str, teacher_id: str) -> List[ClassFocusProfile]:
        return self.store.list_profiles(tenant_id, teacher_id)


def boosts_for_ranking(
    profile: Optional[ClassFocusProfile],
    settings: EngineSettings | None = None,
) -> Optional[Dict[SkillCategory, float]]:
    """Boost map ready for the prioritizer, clamped again at read time."""
    if profile is None:
        return None
    return clamp_boosts(profile.boosts, settings)
