"""Helpers to export a skill score's history log in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any, Optional
import csv
import io

from .config import EngineSettings
from .taxonomy import level_for_score, maturity_band_for_score
from .types import SkillScore

_FIELDS: tuple[str, ...] = (
    "student_id",
    "category",
    "t",
    "score",
    "level",
    "maturity_band",
    "evidence",
)


def _rows(record: SkillScore, settings: Optional[EngineSettings]) -> List[Dict[str, Any]]:
    levels = settings.level_breakpoints if settings else None
    bands = settings.band_breakpoints if settings else None
    out: List[Dict[str, Any]] = []
    for idx, point in enumerate(record.history):
        # evidence and history are appended together, one label per point
        label = record.evidence[idx] if idx < len(record.evidence) else ""
        out.append(
            {
                "student_id": record.student_id,
                "category": record.category.value,
                "t": point.timestamp.isoformat(),
                "score": float(point.score),
                "level": level_for_score(point.score, levels).value,
                "maturity_band": maturity_band_for_score(point.score, bands).value,
                "evidence": label,
            }
        )
    return out


def to_json(records: Iterable[SkillScore], settings: Optional[EngineSettings] = None) -> Dict[str, Any]:
    """Return a JSON-safe payload for history export."""

    rows: List[Dict[str, Any]] = []
    for rec in records:
        rows.extend(_rows(rec, settings))
    return {"history": rows}


def to_csv(records: Iterable[SkillScore], settings: Optional[EngineSettings] = None) -> str:
    """Render history points as CSV with a fixed header."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for rec in records:
        for row in _rows(rec, settings):
            writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
