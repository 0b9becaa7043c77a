from __future__ import annotations

import csv
import io

from competency_core.config import EngineSettings
from competency_core.history_export import to_csv, to_json
from competency_core.taxonomy import SkillCategory


def test_history_rows_pair_points_with_evidence(aggregator):
    aggregator.update_skill_score("stu-1", "MEMORY", 55, "Assessment: Visual Vault")
    aggregator.update_skill_score("stu-1", "MEMORY", 92, "Quest: Memory Grid")
    aggregator.update_skill_score("stu-1", "PLANNING", 30, "Assessment: Mission Planner")
    records = aggregator.skill_scores("stu-1").values()

    payload = to_json(records)
    rows = payload["history"]
    assert len(rows) == 3
    memory = [r for r in rows if r["category"] == SkillCategory.MEMORY.value]
    assert [(r["score"], r["level"], r["maturity_band"]) for r in memory] == [
        (55.0, "DEVELOPING", "PRACTICING"),
        (92.0, "ADVANCED", "ADAPTIVE"),
    ]
    assert memory[1]["evidence"] == "Quest: Memory Grid"


def test_csv_has_fixed_header(aggregator):
    aggregator.update_skill_score("stu-1", "ATTENTION", 61, "Assessment: Focus Sprint")
    text = to_csv(aggregator.skill_scores("stu-1").values())

    reader = csv.DictReader(io.StringIO(text))
    assert reader.fieldnames == ["student_id", "category", "t", "score", "level", "maturity_band", "evidence"]
    (row,) = list(reader)
    assert row["category"] == "ATTENTION"
    assert row["level"] == "PROFICIENT"
    assert row["evidence"] == "Assessment: Focus Sprint"


def test_empty_export():
    assert to_json([]) == {"history": []}
    assert to_csv([]).strip() == "student_id,category,t,score,level,maturity_band,evidence"


def test_export_uses_configured_breakpoints(aggregator):
    aggregator.update_skill_score("stu-1", "MEMORY", 82, "Assessment: Visual Vault")
    strict = EngineSettings.from_cfg({"LEVEL_BREAKPOINTS": [85, 65, 45]})
    (row,) = to_json(aggregator.skill_scores("stu-1").values(), strict)["history"]
    assert row["level"] == "PROFICIENT"
    assert row["maturity_band"] == "INDEPENDENT"
