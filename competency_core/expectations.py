"""Per-grade skill expectations.

Expected bands describe what is commonly observed at a grade, not a
requirement. Emphasis weights (0..1) say how much a skill matters at that
grade and feed both quest prioritization and the weekly plan.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from . import config as cfg_defaults
from .taxonomy import (
    CATEGORY_LABELS,
    MaturityBand,
    SkillCategory,
    band_rank,
    parse_category,
)

C = SkillCategory
B = MaturityBand

Comparison = Literal["below_expected", "within_expected", "above_expected"]


@dataclass(frozen=True)
class GradeSkillExpectation:
    grade: int
    skill: SkillCategory
    expected_band: MaturityBand
    emphasis_weight: float
    narrative_student: str
    narrative_parent_teacher: str


_EMPHASIS: Dict[SkillCategory, float] = {
    C.COGNITIVE_REASONING: 0.20,
    C.CREATIVITY: 0.15,
    C.ATTENTION: 0.15,
    C.PLANNING: 0.15,
    C.MEMORY: 0.10,
    C.SOCIAL_EMOTIONAL: 0.10,
    C.METACOGNITION: 0.10,
    C.LANGUAGE: 0.05,
    C.CHARACTER_VALUES: 0.10,
}

_EXPECTED_BANDS: Dict[int, Dict[SkillCategory, MaturityBand]] = {
    # exploratory: curiosity, experimentation, learning how to learn
    8: {
        C.COGNITIVE_REASONING: B.PRACTICING,
        C.CREATIVITY: B.PRACTICING,
        C.ATTENTION: B.DISCOVERING,
        C.PLANNING: B.DISCOVERING,
        C.MEMORY: B.PRACTICING,
        C.SOCIAL_EMOTIONAL: B.PRACTICING,
        C.METACOGNITION: B.DISCOVERING,
        C.LANGUAGE: B.PRACTICING,
        C.CHARACTER_VALUES: B.PRACTICING,
    },
    # structured: building consistency and awareness
    9: {
        C.COGNITIVE_REASONING: B.CONSISTENT,
        C.CREATIVITY: B.CONSISTENT,
        C.ATTENTION: B.PRACTICING,
        C.PLANNING: B.PRACTICING,
        C.MEMORY: B.CONSISTENT,
        C.SOCIAL_EMOTIONAL: B.CONSISTENT,
        C.METACOGNITION: B.PRACTICING,
        C.LANGUAGE: B.CONSISTENT,
        C.CHARACTER_VALUES: B.CONSISTENT,
    },
    # board-exam year: independence under load
    10: {
        C.COGNITIVE_REASONING: B.INDEPENDENT,
        C.CREATIVITY: B.INDEPENDENT,
        C.ATTENTION: B.CONSISTENT,
        C.PLANNING: B.CONSISTENT,
        C.MEMORY: B.INDEPENDENT,
        C.SOCIAL_EMOTIONAL: B.CONSISTENT,
        C.METACOGNITION: B.CONSISTENT,
        C.LANGUAGE: B.INDEPENDENT,
        C.CHARACTER_VALUES: B.CONSISTENT,
    },
}

_STUDENT_LINES: Dict[MaturityBand, str] = {
    B.DISCOVERING: "You're discovering {label}. It gets easier with practice, and you're doing great.",
    B.PRACTICING: "You're practicing {label}! Keep trying different ways and notice what works for you.",
    B.CONSISTENT: "Your {label} is becoming more consistent. You're finding your own way of doing it.",
    B.INDEPENDENT: "You're using {label} on your own more and more. Try it in new situations!",
    B.ADAPTIVE: "You adapt your {label} to new challenges. Keep stretching yourself.",
}

_PARENT_LINES: Dict[MaturityBand, str] = {
    B.DISCOVERING: (
        "{label} is commonly in the discovering phase at Grade {grade}. Students are just "
        "beginning to build this skill, and growth is gradual and individual."
    ),
    B.PRACTICING: (
        "{label} is commonly in the practicing phase at Grade {grade}. Students are trying "
        "strategies and building confidence through repetition."
    ),
    B.CONSISTENT: (
        "{label} is commonly consistent at Grade {grade}. Students apply it reliably in "
        "familiar situations; unfamiliar ones still take support."
    ),
    B.INDEPENDENT: (
        "{label} is commonly independent at Grade {grade}. Students apply it without "
        "prompting across most familiar contexts."
    ),
    B.ADAPTIVE: (
        "{label} at an adaptive level is uncommon at Grade {grade}; it means the skill "
        "transfers to new contexts."
    ),
}


def _build_table() -> Dict[int, Dict[SkillCategory, GradeSkillExpectation]]:
    table: Dict[int, Dict[SkillCategory, GradeSkillExpectation]] = {}
    for grade, bands in _EXPECTED_BANDS.items():
        row: Dict[SkillCategory, GradeSkillExpectation] = {}
        for skill, band in bands.items():
            label = CATEGORY_LABELS[skill]
            row[skill] = GradeSkillExpectation(
                grade=grade,
                skill=skill,
                expected_band=band,
                emphasis_weight=_EMPHASIS[skill],
                narrative_student=_STUDENT_LINES[band].format(label=label.lower()),
                narrative_parent_teacher=_PARENT_LINES[band].format(label=label, grade=grade),
            )
        table[grade] = row
    return table


GRADE_EXPECTATIONS: Dict[int, Dict[SkillCategory, GradeSkillExpectation]] = _build_table()


def get_expectation(grade: int, skill: object) -> Optional[GradeSkillExpectation]:
    row = GRADE_EXPECTATIONS.get(int(grade))
    if row is None:
        return None
    return row.get(parse_category(skill))


def get_grade_expectations(grade: int) -> List[GradeSkillExpectation]:
    row = GRADE_EXPECTATIONS.get(int(grade), {})
    return sorted(row.values(), key=lambda e: e.emphasis_weight, reverse=True)


def emphasis_weight(grade: int, skill: object) -> float:
    """Emphasis of a skill at a grade; 0.0 for grades outside the table."""
    exp = get_expectation(grade, skill)
    return exp.emphasis_weight if exp else 0.0


def expected_band(grade: int, skill: object) -> MaturityBand:
    exp = get_expectation(grade, skill)
    return exp.expected_band if exp else B.UNCLASSIFIED


def compare_to_expected(
    current: MaturityBand,
    grade: int,
    skill: object,
    tolerance: int | None = None,
) -> Comparison:
    """Compare a current band against the grade's expectation.

    A difference of up to ``tolerance`` bands (default 1) counts as within
    the expected range. Unclassified on either side is always within.
    """
    tol = cfg_defaults.EXPECTATION_BAND_TOLERANCE if tolerance is None else int(tolerance)
    expected = expected_band(grade, skill)
    if current == B.UNCLASSIFIED or expected == B.UNCLASSIFIED:
        return "within_expected"
    diff = band_rank(current) - band_rank(expected)
    if diff < -tol:
        return "below_expected"
    if diff > tol:
        return "above_expected"
    return "within_expected"
