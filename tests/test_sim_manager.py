import importlib
from contextlib import contextmanager
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from foundermode.sim_manager.generator import StubWorkGenerator


@contextmanager
def _reload_db(tmp_path, monkeypatch):
    db_path = tmp_path / "founder.db"
    monkeypatch.setenv("FOUNDER_DB_PATH", str(db_path))
    import foundermode.common.db as db_module
    importlib.reload(db_module)
    yield


@pytest.fixture
def sim_client(tmp_path, monkeypatch):
    with _reload_db(tmp_path, monkeypatch):
        sim_engine_module = importlib.import_module("foundermode.sim_manager.engine")
        sim_app_module = importlib.import_module("foundermode.sim_manager.app")
        importlib.reload(sim_engine_module)
        importlib.reload(sim_app_module)

        SimulationEngine = sim_engine_module.SimulationEngine
        create_app = sim_app_module.create_app

        engine = SimulationEngine(
            generator=StubWorkGenerator(),
            tick_interval_seconds=60.0,
            random_seed=7,
            event_interval=100_000,
            clock=lambda: datetime(2026, 3, 2, 14, 0),
        )
        app = create_app(engine)
        client = TestClient(app)
        try:
            yield client, engine
        finally:
            client.close()
            engine.close()


def _start(client, name="Shiplog", idea="Changelogs for small SaaS teams"):
    response = client.post("/api/v1/game/project", json={"name": name, "idea": idea})
    assert response.status_code == 201
    return response.json()


def _hire(client, role="engineer", skill_level="mid", name=None):
    payload = {"role": role, "skill_level": skill_level}
    if name:
        payload["name"] = name
    response = client.post("/api/v1/employees", json=payload)
    assert response.status_code == 201
    return response.json()


def test_full_game_flow(sim_client):
    client, engine = sim_client

    body = _start(client)
    assert body["project"]["name"] == "Shiplog"
    assert body["tick"] == 0
    assert body["speed"] == "paused"

    again = client.post("/api/v1/game/project", json={"name": "Other", "idea": "Another idea"})
    assert again.status_code == 400

    ada = _hire(client, name="Ada Chen")
    assert ada["id"] == "emp-1"
    assert ada["salary"] == 10000
    assert client.get("/api/v1/game").json()["money"] == 90000
    engine.state.employee("emp-1").productivity = 70

    created = client.post("/api/v1/tasks", json={"title": "Build signup form", "estimated_ticks": 10})
    assert created.status_code == 201
    task = created.json()
    assert task["id"] == "task-1"
    assert task["status"] == "todo"

    assign = client.post(f"/api/v1/tasks/{task['id']}/assign", json={"employee_id": ada["id"]})
    assert assign.status_code == 200
    assert assign.json()["status"] == "in_progress"
    assert assign.json()["assignee_id"] == "emp-1"

    advance = client.post("/api/v1/game/advance", json={"ticks": 15, "reason": "smoke"})
    assert advance.status_code == 200
    advance_body = advance.json()
    assert advance_body["current_tick"] == 15
    assert advance_body["ticks_advanced"] == 15
    assert advance_body["tasks_to_review"] == ["task-1"]

    reviewed = client.get("/api/v1/tasks/task-1").json()
    assert reviewed["status"] == "review"
    assert reviewed["progress_ticks"] == 10
    assert reviewed["assignee_id"] == "emp-1"

    done = client.put("/api/v1/tasks/task-1/status", json={"status": "done"})
    assert done.status_code == 200
    assert done.json()["assignee_id"] is None
    assert done.json()["completed_at"] == 15

    employee = client.get("/api/v1/employees/emp-1").json()
    assert employee["status"] == "idle"
    assert employee["tasks_completed"] == 1
    assert employee["memory"][0]["task_id"] == "task-1"

    invariants = client.get("/api/v1/game/invariants").json()
    assert invariants == {"ok": True, "problems": []}

    achievements = {a["id"]: a for a in client.get("/api/v1/achievements").json()}
    assert achievements["first-steps"]["unlocked"] is True
    assert achievements["first-hire"]["unlocked"] is True
    assert achievements["first-ship"]["unlocked"] is False

    check = client.post("/api/v1/achievements/check").json()
    assert "first-ship" in check["unlocked"]
    assert client.post("/api/v1/achievements/check").json() == {"unlocked": []}


def test_unknown_ids_map_to_not_found(sim_client):
    client, _ = sim_client

    assert client.get("/api/v1/employees/emp-404").status_code == 404
    assert client.get("/api/v1/tasks/task-404").status_code == 404
    assert client.get("/api/v1/missions/mission-404").status_code == 404
    assert client.post("/api/v1/pm/proposals/proposal-404/approve").status_code == 404
    assert client.post("/api/v1/events/trigger", json={"event_id": "alien-invasion"}).status_code == 404
    assert client.post("/api/v1/upgrades/warp-drive/purchase").status_code == 404
    assert client.post("/api/v1/saves/nope/load").status_code == 404
    assert client.delete("/api/v1/saves/nope").status_code == 404


def test_rejected_commands_map_to_bad_request(sim_client):
    client, _ = sim_client
    _start(client)
    first = _hire(client)
    second = _hire(client, role="designer")
    client.post("/api/v1/tasks", json={"title": "Hero section"})

    assert client.post("/api/v1/tasks/task-1/assign", json={"employee_id": first["id"]}).status_code == 200
    # already assigned: no-op, reported as rejected
    repeat = client.post("/api/v1/tasks/task-1/assign", json={"employee_id": second["id"]})
    assert repeat.status_code == 400
    assert client.get("/api/v1/tasks/task-1").json()["assignee_id"] == first["id"]

    assert client.post("/api/v1/upgrades/testing-suite/purchase").status_code == 400
    assert client.post("/api/v1/ai/work/task-404/retry").status_code == 400


def test_validation_errors(sim_client):
    client, _ = sim_client

    assert client.post("/api/v1/game/advance", json={"ticks": 0}).status_code == 422
    assert client.post("/api/v1/employees", json={"role": "astronaut"}).status_code == 422
    assert client.post("/api/v1/saves", json={"slot": "bad slot!"}).status_code == 422
    assert client.post("/api/v1/game/speed", json={"speed": "ludicrous"}).status_code == 422


def test_auto_ticks_control(sim_client):
    client, engine = sim_client

    paused = client.post("/api/v1/game/ticks/start")
    assert paused.status_code == 400

    speed = client.post("/api/v1/game/speed", json={"speed": "fast"})
    assert speed.status_code == 200
    assert speed.json()["auto_tick"] is True
    assert engine.tick_interval() == pytest.approx(60.0 * 0.33)

    twice = client.post("/api/v1/game/ticks/start")
    assert twice.status_code == 400

    stop = client.post("/api/v1/game/ticks/stop")
    assert stop.status_code == 200
    assert stop.json()["auto_tick"] is False

    tick = client.post("/api/v1/game/tick")
    assert tick.status_code == 200
    assert tick.json()["current_tick"] == 1

    client.post("/api/v1/game/speed", json={"speed": "paused"})
    assert client.post("/api/v1/game/tick").json() is None
    assert client.get("/api/v1/game").json()["tick"] == 1


def test_queue_and_tracker_import(sim_client):
    client, _ = sim_client
    _start(client)
    _hire(client, role="engineer")

    issues = [
        {"number": 7, "title": "Crash on signup", "body": "Null email", "labels": [{"name": "bug"}, {"name": "urgent"}]},
        {"number": 8, "title": "Update README", "labels": []},
        {"number": 9, "title": "Bump deps", "pull_request": {"url": "x"}},
    ]
    imported = client.post(
        "/api/v1/queue/import/github",
        json={"source": "acme/shiplog", "issues": issues},
    )
    assert imported.status_code == 200
    items = imported.json()
    assert [item["external_id"] for item in items] == ["github-7", "github-8"]
    assert items[0]["type"] == "bug"
    assert items[0]["priority"] == "critical"
    assert items[0]["source_url"] == "https://github.com/acme/shiplog/issues/7"

    duplicate = client.post("/api/v1/queue/import/github", json={"source": "acme/shiplog", "issues": issues})
    assert duplicate.json() == []

    processed = client.post("/api/v1/queue/process").json()
    assert len(processed) == 1
    assert processed[0]["assigned_task_id"] == "task-1"
    queue = client.get("/api/v1/queue").json()
    assert [item["status"] for item in queue["items"]] == ["assigned", "queued"]

    not_configured = client.post("/api/v1/queue/import/linear", json={"source": "team-1"})
    assert not_configured.status_code == 502


def test_missions_and_pm_proposals(sim_client):
    client, _ = sim_client
    _start(client)

    evaluated = client.post("/api/v1/pm/evaluate", json={"force": True, "max_missions": 3})
    assert evaluated.status_code == 200
    brain = evaluated.json()
    assert brain["product_state"]["phase"] == "mvp"
    assert brain["thoughts"]

    proposals = client.get("/api/v1/pm/proposals").json()
    titles = [p["title"] for p in proposals]
    assert "Start mission: Core Database Setup" in titles
    assert "Hire a engineer" in titles

    database = next(p for p in proposals if p["title"] == "Start mission: Core Database Setup")
    approved = client.post(f"/api/v1/pm/proposals/{database['id']}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert client.post(f"/api/v1/pm/proposals/{database['id']}/approve").status_code == 400

    missions = client.get("/api/v1/missions").json()
    assert len(missions) == 1
    mission = missions[0]
    assert mission["branch_name"] == "mission/core-database-setup"
    assert len(mission["task_ids"]) == 4

    assert client.post(f"/api/v1/missions/{mission['id']}/complete").status_code == 400
    started = client.post(f"/api/v1/missions/{mission['id']}/start")
    assert started.json()["status"] == "active"
    assert client.get("/api/v1/game").json()["active_mission_id"] == mission["id"]

    pr = client.post(
        f"/api/v1/missions/{mission['id']}/pull-request",
        json={"url": "https://github.com/acme/shiplog/pull/1", "number": 1},
    )
    assert pr.json()["status"] == "review"
    completed = client.post(f"/api/v1/missions/{mission['id']}/complete")
    assert completed.json()["status"] == "completed"
    assert client.get("/api/v1/game").json()["active_mission_id"] is None


def test_ai_work_and_settings(sim_client):
    client, _ = sim_client
    _start(client)
    engineer = _hire(client)

    settings = client.put("/api/v1/ai/settings", json={"enabled": True, "api_key": "sk-test"})
    assert settings.json() == {"enabled": True, "provider": "openai", "model": "gpt-4o-mini", "has_api_key": True}

    snapshot = client.get("/api/v1/game/snapshot").json()
    assert "api_key" not in snapshot["ai_settings"]

    client.put(f"/api/v1/employees/{engineer['id']}/ai", json={"model": "gpt-4.1"})
    client.post("/api/v1/tasks", json={"title": "Settings page", "type": "feature"})
    client.post("/api/v1/tasks/task-1/assign", json={"employee_id": engineer["id"]})

    queued = client.get("/api/v1/ai/work").json()
    assert [item["task_id"] for item in queued] == ["task-1"]

    result = client.post("/api/v1/ai/work/process").json()
    assert result == {"task_id": "task-1", "status": "completed", "error": None}
    task = client.get("/api/v1/tasks/task-1").json()
    assert task["status"] == "review"
    assert task["artifacts"][0]["model_used"] == "gpt-4.1"
    assert client.post("/api/v1/ai/work/process").json()["status"] == "idle"


def test_save_and_load(sim_client):
    client, engine = sim_client
    _start(client)
    _hire(client)
    engine.update_ai_settings(api_key="sk-keep")

    saved = client.post("/api/v1/saves", json={"slot": "before-advance"})
    assert saved.status_code == 201
    assert saved.json()["tick"] == 0

    client.post("/api/v1/game/advance", json={"ticks": 30})
    assert client.get("/api/v1/game").json()["tick"] == 30

    loaded = client.post("/api/v1/saves/before-advance/load")
    assert loaded.status_code == 200
    assert loaded.json()["tick"] == 0
    assert loaded.json()["employee_count"] == 1
    assert loaded.json()["speed"] == "paused"
    assert engine.state.ai_settings.api_key == "sk-keep"

    slots = [row["slot"] for row in client.get("/api/v1/saves").json()]
    assert slots == ["before-advance"]
    assert client.delete("/api/v1/saves/before-advance").status_code == 204


def test_reset_keeps_api_key(sim_client):
    client, engine = sim_client
    _start(client)
    engine.update_ai_settings(api_key="sk-keep")
    client.post("/api/v1/game/advance", json={"ticks": 5})

    reset = client.post("/api/v1/game/reset")
    assert reset.status_code == 200
    assert reset.json()["tick"] == 0
    assert reset.json()["project"] is None
    assert engine.state.ai_settings.api_key == "sk-keep"
