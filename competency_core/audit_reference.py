from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from .expectations import GRADE_EXPECTATIONS
from .readiness import GOAL_SKILL_MAPS, GoalSkillMap
from .taxonomy import CATEGORIES, SUPPORTED_GRADES, SkillCategory

WEIGHT_TOLERANCE: float = 1e-6


def audit_reference(
    goal_maps: Mapping[str, GoalSkillMap] | None = None,
    expectations: Mapping[int, Mapping[SkillCategory, object]] | None = None,
) -> dict[str, object]:
    goals = GOAL_SKILL_MAPS if goal_maps is None else goal_maps
    grades = GRADE_EXPECTATIONS if expectations is None else expectations

    warnings: list[str] = []
    goal_rows: dict[str, dict[str, object]] = {}
    for key, goal in goals.items():
        total = sum(goal.weights.values())
        mix_total = sum(goal.quest_mix.values())
        goal_rows[key] = {"weight_sum": round(total, 6), "skills": len(goal.weights), "mix_sum": mix_total}
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            warnings.append(f"goal {key} weights sum to {total:.3f} (expected 1.000)")
        if mix_total != 100:
            warnings.append(f"goal {key} quest mix sums to {mix_total} (expected 100)")
        for skill, weight in goal.weights.items():
            if not 0.0 <= weight <= 1.0:
                warnings.append(f"goal {key} weight for {skill.value} out of range: {weight}")

    grade_rows: dict[int, dict[str, object]] = {}
    for grade in SUPPORTED_GRADES:
        row = grades.get(grade, {})
        missing = [c.value for c in CATEGORIES if c not in row]
        grade_rows[grade] = {"skills": len(row), "missing": missing}
        if missing:
            warnings.append(f"grade {grade} missing expectations for {', '.join(missing)}")

    summary = {
        "goals": goal_rows,
        "grades": grade_rows,
        "warnings": warnings,
        "totals": {"goals": len(goal_rows), "grades": len(grade_rows)},
    }
    return summary


def print_report(summary: dict[str, object]) -> None:
    goals: dict[str, dict[str, object]] = summary["goals"]  # type: ignore[assignment]
    print("=== Goal Skill Maps ===")
    for key in sorted(goals):
        row = goals[key]
        print(f"  {key:<20} skills={row['skills']:2d}  weight_sum={row['weight_sum']}  mix_sum={row['mix_sum']}")

    grades: dict[int, dict[str, object]] = summary["grades"]  # type: ignore[assignment]
    print("\n=== Grade Expectations ===")
    for grade in sorted(grades):
        row = grades[grade]
        print(f"  Grade {grade}: skills={row['skills']}")

    warnings: list[str] = summary["warnings"]  # type: ignore[assignment]
    if warnings:
        print("\nWarnings:")
        for msg in warnings:
            print(f" - {msg}")
    else:
        print("\nNo warnings.")

    print("\nTotals:", summary["totals"])


def write_summary(summary: dict[str, object], path: Path = Path("/tmp/reference_audit.json")) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True, default=str)
    path.write_text(text + "\n", encoding="utf-8")
    print(text)
    return text


def main(_argv: list[str] | None = None) -> int:
    summary = audit_reference()
    print_report(summary)
    write_summary(summary)
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
