from __future__ import annotations

from collections import Counter
from datetime import date

from competency_core.config import EngineSettings
from competency_core.plan import daily_quest_types, generate_weekly_plan
from competency_core.quests import QUESTS_BY_ID, generate_daily_quests, quests_for_grade
from competency_core.taxonomy import QuestType

MONDAY = date(2026, 3, 2)
SCORES = {"COGNITIVE_REASONING": 90, "PLANNING": 20}


def test_weekly_plan_focuses_on_weighted_gaps():
    plan = generate_weekly_plan("stu-1", "Software Engineer", 20, SCORES, MONDAY, grade=9)

    assert plan["goal"] == "Software Engineer"
    assert plan["focus_skills"] == ["PLANNING", "ATTENTION", "CREATIVITY"]
    assert plan["week_start"] == "2026-03-02"
    assert plan["week_end"] == "2026-03-08"
    assert plan["current_readiness"] == 54
    assert plan["goal_readiness_delta"] == 0.59
    assert len(plan["daily_plan"]) == 7


def test_daily_quests_follow_grade_mix_and_budget():
    plan = generate_weekly_plan("stu-1", "Software Engineer", 20, SCORES, MONDAY, grade=9)
    for day in plan["daily_plan"]:
        types = Counter(q["type"] for q in day["quests"])
        assert types == {"mini_game": 2, "choice_scenario": 1, "reflection": 1}
        for q in day["quests"]:
            quest = QUESTS_BY_ID[q["quest_id"]]
            assert not quest.grade_applicability or 9 in quest.grade_applicability


def test_plan_is_deterministic():
    one = generate_weekly_plan("stu-1", "Doctor", 15, SCORES, MONDAY, grade=10)
    two = generate_weekly_plan("stu-1", "Doctor", 15, SCORES, MONDAY, grade=10)
    assert one == two


def test_unregistered_goal_gets_balanced_plan():
    plan = generate_weekly_plan("stu-1", "Marine Biologist", 10, {}, MONDAY)
    assert plan["goal"] == "Balanced"
    assert len(plan["focus_skills"]) == 3
    # no measured skills, so readiness falls back to 0
    assert plan["current_readiness"] == 0


def test_readiness_delta_is_capped():
    settings = EngineSettings.from_cfg({"PLAN_MAX_READINESS_DELTA": 1.0})
    low = {cat: 0 for cat in ("COGNITIVE_REASONING", "PLANNING", "ATTENTION", "CREATIVITY")}
    plan = generate_weekly_plan("stu-1", "Software Engineer", 10, low, MONDAY, grade=8, settings=settings)
    assert plan["goal_readiness_delta"] == 1.0


def test_small_budget_gives_empty_days():
    plan = generate_weekly_plan("stu-1", "CA", 4, SCORES, MONDAY, grade=8)
    assert all(day["quests"] == [] for day in plan["daily_plan"])


def test_daily_quest_types_split():
    types = daily_quest_types(10, 5, 0)
    assert Counter(types) == {QuestType.MINI_GAME: 3, QuestType.CHOICE_SCENARIO: 1, QuestType.REFLECTION: 1}
    assert daily_quest_types(8, 0, 3) == []
    # unknown grades use the grade-10 mix
    assert Counter(daily_quest_types(12, 5, 0)) == Counter(types)


def test_daily_quest_rotation():
    monday = generate_daily_quests(8, MONDAY)
    assert [q.type for q in monday] == list(QuestType)
    assert generate_daily_quests(8, MONDAY) == monday
    assert all(q in quests_for_grade(8) for q in monday)
