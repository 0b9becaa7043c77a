"""Built-in quest library and the deterministic daily quest set."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Sequence

from .taxonomy import QuestType, SUPPORTED_GRADES, SkillCategory
from .types import QuestCandidate

C = SkillCategory
Q = QuestType

_ALL = frozenset(SUPPORTED_GRADES)


QUEST_LIBRARY: List[QuestCandidate] = [
    QuestCandidate("quick-pattern", Q.MINI_GAME, "Quick Pattern Challenge", (C.COGNITIVE_REASONING,),
                   "Spot the rule behind a short sequence.", 5, _ALL),
    QuestCandidate("memory-grid", Q.MINI_GAME, "Memory Grid", (C.MEMORY,),
                   "Recall where the tiles were.", 5, _ALL),
    QuestCandidate("focus-dash", Q.MINI_GAME, "Focus Dash", (C.ATTENTION,),
                   "Tap only the targets that match.", 4, _ALL),
    QuestCandidate("route-planner", Q.MINI_GAME, "Route Planner", (C.PLANNING, C.COGNITIVE_REASONING),
                   "Plan the shortest route with limited moves.", 6, frozenset({9, 10})),
    QuestCandidate("idea-burst", Q.MINI_GAME, "Idea Burst", (C.CREATIVITY,),
                   "List as many uses for an object as you can.", 5, _ALL),
    QuestCandidate("word-weaver", Q.MINI_GAME, "Word Weaver", (C.LANGUAGE,),
                   "Build a short story from five words.", 6, frozenset({8, 9})),
    QuestCandidate("daily-reflection", Q.REFLECTION, "Daily Reflection", (C.METACOGNITION,),
                   "What went well today, and what would you change?", 3, _ALL),
    QuestCandidate("plan-my-week", Q.REFLECTION, "Plan My Week", (C.PLANNING, C.METACOGNITION),
                   "Write three steps toward one goal this week.", 4, frozenset({9, 10})),
    QuestCandidate("feelings-check", Q.REFLECTION, "Feelings Check-in", (C.SOCIAL_EMOTIONAL,),
                   "Name a feeling you had today and what caused it.", 3, _ALL),
    QuestCandidate("decision-scenario", Q.CHOICE_SCENARIO, "Decision Scenario", (C.SOCIAL_EMOTIONAL, C.CHARACTER_VALUES),
                   "A friend asks to copy your homework. What do you do?", 4, _ALL),
    QuestCandidate("team-dilemma", Q.CHOICE_SCENARIO, "Team Dilemma", (C.SOCIAL_EMOTIONAL, C.LANGUAGE),
                   "Your group disagrees on a plan. How do you respond?", 5, frozenset({8, 9})),
    QuestCandidate("exam-crunch", Q.CHOICE_SCENARIO, "Exam Crunch", (C.PLANNING, C.ATTENTION),
                   "Three tests next week and one free evening. What comes first?", 5, frozenset({10})),
]

QUESTS_BY_ID: Dict[str, QuestCandidate] = {q.id: q for q in QUEST_LIBRARY}


def quests_for_grade(grade: int, pool: Sequence[QuestCandidate] = QUEST_LIBRARY) -> List[QuestCandidate]:
    return [q for q in pool if not q.grade_applicability or int(grade) in q.grade_applicability]


def generate_daily_quests(grade: int, day: date, pool: Sequence[QuestCandidate] = QUEST_LIBRARY) -> List[QuestCandidate]:
    """One quest per type for ``day``, rotating through the grade's pool by date."""
    eligible = quests_for_grade(grade, pool)
    out: List[QuestCandidate] = []
    for qtype in QuestType:
        of_type = [q for q in eligible if q.type == qtype]
        if of_type:
            out.append(of_type[day.toordinal() % len(of_type)])
    return out
