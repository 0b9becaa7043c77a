from __future__ import annotations

import importlib
import sys
import threading
import time
from datetime import timedelta

from fastapi.testclient import TestClient

from competency_core.taxonomy import SkillCategory
from tests.conftest import T0

_DEF_MODULES = [
    "api.storage",
    "api.app",
]


def _reload_app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    return sys.modules["api.storage"], sys.modules["api.app"]


def _attempt(client, n: int, **overrides):
    body = {
        "student_id": "stu-1",
        "activity_id": ["pattern_forge", "logic_ladder", "quick-pattern"][n % 3],
        "attempt_id": f"att-{n}",
        "normalized_scores": {"COGNITIVE_REASONING": 70 + n % 3},
        "completed_at": (T0 + timedelta(days=n)).isoformat(),
        "time_spent_sec": 300,
    }
    body.update(overrides)
    return client.post("/tenants/t1/attempts", json=body)


def test_attempt_updates_skill_and_history(tmp_path, monkeypatch):
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    first = client.post(
        "/tenants/t1/attempts",
        json={
            "student_id": "stu-1",
            "activity_id": "story_lens",
            "attempt_id": "a1",
            "answers": [{"correct": True}, {"correct": True}, {"correct": False}, {"correct": True}],
            "time_spent_sec": 120,
        },
    )
    assert first.status_code == 200
    body = first.json()
    assert body["raw_scores"]["accuracy"] == 75
    assert {u["category"] for u in body["updates"]} == {"LANGUAGE", "CREATIVITY"}

    skills = client.get("/tenants/t1/students/stu-1/skills").json()["skills"]
    lang = next(s for s in skills if s["category"] == "LANGUAGE")
    assert lang["score"] == 75.0
    assert lang["level"] == "PROFICIENT"
    assert lang["evidence"] == ["Assessment: Story Lens"]
    assert storage.SKILL_SCORES_PATH.exists()

    hist = client.get("/tenants/t1/students/stu-1/skills/history.csv")
    assert hist.status_code == 200
    assert hist.text.splitlines()[0] == "student_id,category,t,score,level,maturity_band,evidence"

    # other tenants never see this student
    assert client.get("/tenants/t2/students/stu-1/skills").json()["skills"] == []
    assert client.get("/tenants/t2/students/stu-1/skills/history.json").status_code == 404


def test_attempt_errors(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    assert _attempt(client, 0).status_code == 200
    assert _attempt(client, 0).status_code == 409
    bad = _attempt(client, 1, normalized_scores={"ALGEBRA": 50})
    assert bad.status_code == 422
    assert "ALGEBRA" in bad.json()["detail"]
    assert _attempt(client, 2, normalized_scores=None).status_code == 422
    assert _attempt(client, 3, kind="homework").status_code == 422


def test_insights_unlock_after_enough_activity(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    for n in range(3):
        _attempt(client, n)
    early = client.get("/tenants/t1/students/stu-1/insights").json()
    assert early["confident_insights"]["state"] == "NOT_YET_UNLOCKED"
    assert early["confident_insights"]["remaining_activities"] == 7

    for n in range(3, 12):
        _attempt(client, n)
    later = client.get("/tenants/t1/students/stu-1/insights").json()
    assert later["confident_insights"]["state"] == "UNLOCKED"
    assert [s["id"] for s in later["confident_insights"]["signals"]] == ["pattern-recognition"]


def test_readiness_and_plan(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    _attempt(client, 0, normalized_scores={"COGNITIVE_REASONING": 90})

    ready = client.get("/tenants/t1/students/stu-1/readiness", params={"goal": "CA"}).json()
    assert ready["readiness"] == 60
    assert len(ready["suggestions"]) == 3

    plan = client.post(
        "/tenants/t1/students/stu-1/weekly-plan",
        json={"goal_title": "CA", "minutes_per_day": 15, "week_start": "2026-03-02", "grade": 10},
    )
    assert plan.status_code == 200
    assert plan.json()["week_end"] == "2026-03-08"
    assert len(plan.json()["daily_plan"]) == 7


def test_class_focus_and_recommendations(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    assert client.get("/tenants/t1/teachers/tch-1/class-focus").status_code == 404
    first = client.post("/tenants/t1/teachers/tch-1/class-focus", json={"boosts": {"PLANNING": 0.5}})
    assert first.status_code == 200
    assert first.json()["boosts"] == {"PLANNING": 0.2}
    second = client.post("/tenants/t1/teachers/tch-1/class-focus", json={"boosts": {"MEMORY": 0.1}})
    active = client.get("/tenants/t1/teachers/tch-1/class-focus").json()
    assert active["id"] == second.json()["id"]

    rec = client.post(
        "/tenants/t1/teachers/tch-1/recommend-quests",
        json={"grade": 9, "quest_count": 3, "intent": "IMPROVE_FOCUS"},
    )
    assert rec.status_code == 200
    quests = rec.json()["quests"]
    assert len(quests) == 3
    priorities = [q["priority"] for q in quests]
    assert priorities == sorted(priorities, reverse=True)
    assert rec.json()["class_focus_id"] == second.json()["id"]

    bad = client.post("/tenants/t1/teachers/tch-1/recommend-quests", json={"grade": 9, "intent": "NAP"})
    assert bad.status_code == 422


def test_daily_quests_are_stable_for_a_day(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    first = client.get("/quests/daily", params={"grade": 8, "day": "2026-03-02"}).json()
    again = client.get("/quests/daily", params={"grade": 8, "day": "2026-03-02"}).json()
    assert first == again
    assert [q["type"] for q in first["quests"]] == ["mini_game", "reflection", "choice_scenario"]


def test_untargeted_scores_are_not_counted_as_evidence(tmp_path, monkeypatch):
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    for n in range(12):
        res = _attempt(
            client,
            n,
            normalized_scores={"CREATIVITY": 70, "COGNITIVE_REASONING": 90},
            target_categories=["COGNITIVE_REASONING"],
        )
        assert [u["category"] for u in res.json()["updates"]] == ["COGNITIVE_REASONING"]

    stored = storage.attempts_for_student("t1", "stu-1")
    assert all(set(a.normalized_scores) == {SkillCategory.COGNITIVE_REASONING} for a in stored)

    skills = client.get("/tenants/t1/students/stu-1/skills").json()["skills"]
    assert [s["category"] for s in skills] == ["COGNITIVE_REASONING"]
    cr_points = len(skills[0]["history"])

    signals = client.get("/tenants/t1/students/stu-1/insights").json()["confident_insights"]["signals"]
    assert [s["id"] for s in signals] == ["pattern-recognition"]
    assert signals[0]["observed_count"] == cr_points == 12

    # targets with no matching score are rejected
    bad = _attempt(client, 12, normalized_scores={"CREATIVITY": 70}, target_categories=["MEMORY"])
    assert bad.status_code == 422


def test_concurrent_first_requests_share_one_aggregator(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    real_store = app_module.JsonSkillScoreStore

    def slow_store(tenant_id):
        time.sleep(0.05)
        return real_store(tenant_id)

    monkeypatch.setattr(app_module, "JsonSkillScoreStore", slow_store)
    got = []
    threads = [threading.Thread(target=lambda: got.append(app_module._aggregator("t9"))) for _ in range(2)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert len(got) == 2
    assert got[0] is got[1]
    assert app_module.AGGREGATORS["t9"] is got[0]
