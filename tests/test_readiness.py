from __future__ import annotations

import random

import pytest

from competency_core.config import EngineSettings
from competency_core.errors import InvalidCategory
from competency_core.readiness import (
    GOAL_SKILL_MAPS,
    calculate_goal_readiness,
    get_skill_improvement_suggestions,
    goal_map_from_weights,
    goal_map_or_default,
    resolve_goal_map,
    round_half_up,
)
from competency_core.taxonomy import SkillCategory
from competency_core.types import SkillScore

C = SkillCategory


def test_single_skill_goal_reads_straight_through():
    goal = goal_map_from_weights("Analyst", {"COGNITIVE_REASONING": 1.0})
    registry = {goal.key: goal}
    assert calculate_goal_readiness("Analyst", {C.COGNITIVE_REASONING: 85}, registry=registry) == 85


def test_unmeasured_skills_count_as_default():
    # CA: 0.25 * 90 + 0.75 * 50
    assert calculate_goal_readiness("CA", {"COGNITIVE_REASONING": 90}) == 60
    assert calculate_goal_readiness("CA", {}) == 50
    assert calculate_goal_readiness("CA", {}, default_score=40) == 40


def test_measured_zero_is_not_replaced_by_default():
    goal = goal_map_from_weights("Solo", {"MEMORY": 0.5, "ATTENTION": 0.5})
    registry = {goal.key: goal}
    assert calculate_goal_readiness("Solo", {C.MEMORY: 0}, registry=registry) == 25


def test_accepts_skill_score_records():
    rec = SkillScore(student_id="stu-1", category=C.COGNITIVE_REASONING, score=90)
    assert calculate_goal_readiness("CA", {C.COGNITIVE_REASONING: rec}) == 60


def test_goal_resolution_order():
    assert resolve_goal_map("Doctor") is GOAL_SKILL_MAPS["Doctor"]
    assert resolve_goal_map("software engineer") is GOAL_SKILL_MAPS["Software Engineer"]
    assert resolve_goal_map("Chartered Accountant") is GOAL_SKILL_MAPS["CA"]
    assert resolve_goal_map("I want to start a business") is GOAL_SKILL_MAPS["Entrepreneur"]
    assert resolve_goal_map("Marine Biologist") is None
    assert resolve_goal_map("") is None
    assert goal_map_or_default("Marine Biologist").key == "Balanced"


def test_custom_registry_skips_keyword_aliases():
    goal = goal_map_from_weights("Analyst", {"COGNITIVE_REASONING": 1.0})
    assert resolve_goal_map("analyst", {goal.key: goal}) is goal
    assert resolve_goal_map("software developer", {goal.key: goal}) is None


def test_unknown_goal_uses_unweighted_average():
    assert calculate_goal_readiness("Marine Biologist", {C.COGNITIVE_REASONING: 80, C.MEMORY: 61}) == 71
    assert calculate_goal_readiness("Marine Biologist", {}) == 0


def test_round_half_up():
    assert round_half_up(70.5) == 71
    assert round_half_up(71.5) == 72
    assert round_half_up(70.49) == 70


def test_readiness_bounded_for_any_scores():
    rng = random.Random(5)
    goals = list(GOAL_SKILL_MAPS) + ["Astronaut", None]
    for _ in range(300):
        scores = {
            cat: rng.uniform(-50, 150) for cat in rng.sample(list(C), rng.randint(0, len(C)))
        }
        value = calculate_goal_readiness(rng.choice(goals), scores)
        assert isinstance(value, int)
        assert 0 <= value <= 100


def test_invalid_category_in_scores():
    with pytest.raises(InvalidCategory):
        calculate_goal_readiness("CA", {"MATHS": 90})


def test_improvement_suggestions_rank_by_weighted_gap():
    got = get_skill_improvement_suggestions(
        "Software Engineer", {C.COGNITIVE_REASONING: 90, C.PLANNING: 20}, limit=3
    )
    assert [s.skill for s in got] == [C.PLANNING, C.ATTENTION, C.CREATIVITY]
    assert got[0].priority == pytest.approx(16.0)
    assert got[0].current_score == 20


def test_no_suggestions_for_unknown_goal():
    assert get_skill_improvement_suggestions("Marine Biologist", {C.MEMORY: 10}) == []


def test_registered_weights_sum_to_one():
    for goal in GOAL_SKILL_MAPS.values():
        assert sum(goal.weights.values()) == pytest.approx(1.0)
        assert sum(goal.quest_mix.values()) == 100


def test_unmeasured_default_follows_settings():
    low = EngineSettings.from_cfg({"DEFAULT_SKILL_SCORE": 20})
    assert calculate_goal_readiness("Doctor", {}, settings=low) == 20
    assert calculate_goal_readiness("Doctor", {}, default_score=30, settings=low) == 30

    suggestions = get_skill_improvement_suggestions("CA", {C.COGNITIVE_REASONING: 90}, settings=low)
    assert {s.current_score for s in suggestions if s.skill != C.COGNITIVE_REASONING} == {20}


def test_goal_keywords_match_whole_words():
    assert resolve_goal_map("Teach in Africa") is None
    assert resolve_goal_map("Caring nurse") is None
    assert resolve_goal_map("I want to be a CA") is GOAL_SKILL_MAPS["CA"]
    assert resolve_goal_map("Mechanical Engineering") is GOAL_SKILL_MAPS["Software Engineer"]
    assert calculate_goal_readiness("Teach in Africa", {C.LANGUAGE: 64}) == 64
