from __future__ import annotations

import json

import pytest

from competency_core import config
from competency_core.taxonomy import SkillCategory
from competency_core.types import SkillScore


def test_settings_follow_module_constants(monkeypatch):
    monkeypatch.setattr(config, "CLASS_FOCUS_MAX_BOOST", 0.35, raising=False)
    assert config.EngineSettings.from_cfg(None).class_focus_max_boost == 0.35


def test_mapping_overrides_win():
    s = config.EngineSettings.from_cfg({"GLOBAL_MIN": "12", "INTENT_MULTIPLIER": 1.5})
    assert s.global_min == 12
    assert s.intent_multiplier == 1.5
    assert s.type_min == config.TYPE_MIN


def test_env_helpers_fall_back_on_garbage(monkeypatch):
    monkeypatch.setenv("X_INT", "twelve")
    monkeypatch.setenv("X_FLOAT", " 0.25 ")
    monkeypatch.setenv("X_BOOL", "yes")
    assert config._env_int("X_INT", 10) == 10
    assert config._env_float("X_FLOAT", 0.2) == 0.25
    assert config._env_bool("X_BOOL", False) is True
    assert config._env_int("X_MISSING", 7) == 7


def test_load_config_reads_json_file(monkeypatch, tmp_path):
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"GLOBAL_MIN": 4}), encoding="utf-8")
    monkeypatch.setenv("COMPETENCY_CONFIG", str(path))
    assert config.load_config() == {"GLOBAL_MIN": 4}
    assert config.default_settings().global_min == 4

    path.write_text("[1, 2]", encoding="utf-8")
    assert config.load_config() == {}


def test_breakpoints_are_settings(monkeypatch):
    s = config.EngineSettings.from_cfg({"LEVEL_BREAKPOINTS": [85, 65, 45]})
    assert s.level_breakpoints == (85, 65, 45)
    assert s.band_breakpoints == config.BAND_BREAKPOINTS

    with pytest.raises(ValueError):
        config.EngineSettings.from_cfg({"BAND_BREAKPOINTS": [90, 80]})

    monkeypatch.setenv("X_POINTS", "85, 65, 45")
    assert config._env_ints("X_POINTS", (80, 60, 40)) == (85, 65, 45)
    monkeypatch.setenv("X_POINTS", "85,65")
    assert config._env_ints("X_POINTS", (80, 60, 40)) == (80, 60, 40)


def test_records_use_configured_breakpoints():
    record = SkillScore(student_id="stu-1", category=SkillCategory.MEMORY, score=82.0)
    strict = config.EngineSettings.from_cfg({"LEVEL_BREAKPOINTS": [85, 65, 45], "BAND_BREAKPOINTS": [95, 85, 65, 45]})

    assert record.to_dict()["level"] == "ADVANCED"
    assert record.to_dict(strict)["level"] == "PROFICIENT"
    assert record.to_dict(strict)["maturity_band"] == "CONSISTENT"
