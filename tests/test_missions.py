from foundermode.sim_manager.assignment import create_task, update_task_status
from foundermode.sim_manager.missions import (
    abandon_mission,
    add_mission_commit,
    add_mission_to_epic,
    add_task_to_mission,
    branch_name_for,
    complete_mission,
    create_epic,
    create_mission,
    create_mission_with_tasks,
    remove_task_from_mission,
    set_mission_pr,
    start_mission,
    update_epic_status,
)
from foundermode.sim_manager.models import GameState


def test_branch_names():
    assert branch_name_for("User Auth!!") == "mission/user-auth"
    assert branch_name_for("CI/CD Pipeline") == "mission/ci-cd-pipeline"
    assert branch_name_for("  Spaces  ") == "mission/-spaces"


def test_mission_lifecycle():
    state = GameState()
    mission = create_mission(state, "User Authentication", "Login and signup", "critical")
    assert mission.id == "mission-1"
    assert mission.status == "planning"
    assert mission.branch_name == "mission/user-authentication"

    assert not complete_mission(state, mission.id)
    assert not set_mission_pr(state, mission.id, "https://example.test/pr/1", 1)

    state.tick = 10
    assert start_mission(state, mission.id)
    assert mission.started_at == 10
    assert state.active_mission_id == mission.id
    assert not start_mission(state, mission.id)

    assert set_mission_pr(state, mission.id, "https://example.test/pr/1", 1)
    assert mission.status == "review"
    assert mission.pull_request_number == 1

    state.tick = 20
    assert complete_mission(state, mission.id)
    assert mission.status == "completed"
    assert mission.completed_at == 20
    assert state.stats.features_shipped == 1
    assert state.active_mission_id is None

    assert not abandon_mission(state, mission.id)
    assert add_mission_commit(state, mission.id, "late commit") is None


def test_starting_another_mission_moves_focus():
    state = GameState()
    first = create_mission(state, "First")
    second = create_mission(state, "Second")
    start_mission(state, first.id)
    start_mission(state, second.id)
    assert state.active_mission_id == second.id
    assert first.status == "active"

    assert abandon_mission(state, second.id)
    assert second.status == "abandoned"
    assert state.active_mission_id is None


def test_mission_moves_to_review_when_tasks_are_done():
    state = GameState()
    mission = create_mission_with_tasks(
        state,
        "Analytics",
        "Track usage",
        "medium",
        [{"title": "Tracking events", "estimated_ticks": 50}, {"title": "Charts", "type": "design"}],
    )
    assert len(mission.task_ids) == 2
    first, second = (state.task(tid) for tid in mission.task_ids)
    assert first.estimated_ticks == 50
    assert second.type == "design"
    assert second.mission_id == mission.id

    start_mission(state, mission.id)
    update_task_status(state, first.id, "done")
    assert mission.status == "active"
    update_task_status(state, second.id, "done")
    assert mission.status == "review"


def test_task_membership():
    state = GameState()
    mission = create_mission(state, "Docs")
    task = create_task(state, title="Write README")

    assert add_task_to_mission(state, mission.id, task.id)
    assert not add_task_to_mission(state, mission.id, task.id)
    assert task.mission_id == mission.id

    assert remove_task_from_mission(state, mission.id, task.id)
    assert task.mission_id is None
    assert not remove_task_from_mission(state, mission.id, task.id)

    abandon_mission(state, mission.id)
    assert not add_task_to_mission(state, mission.id, task.id)


def test_commits_are_recorded():
    state = GameState()
    mission = create_mission(state, "API Foundation")
    commit = add_mission_commit(state, mission.id, "Add router", ["api/router.py"], task_id="task-1")
    assert len(commit.sha) == 7
    assert commit.files == ["api/router.py"]
    assert state.stats.commits_created == 1
    other = add_mission_commit(state, mission.id, "Add router")
    assert other.sha != commit.sha


def test_epics_use_templates():
    state = GameState()
    epic = create_epic(state, "Monetization")
    assert epic.phase == "scale"
    assert epic.priority == "high"
    assert epic.description == "Payments, subscriptions, and revenue"

    custom = create_epic(state, "Internal tools", "Admin screens", "low", "growth")
    assert custom.phase == "growth"

    mission = create_mission(state, "Payment Integration")
    assert add_mission_to_epic(state, epic.id, mission.id)
    assert not add_mission_to_epic(state, epic.id, mission.id)
    assert not add_mission_to_epic(state, epic.id, "mission-404")

    state.tick = 30
    assert update_epic_status(state, epic.id, "completed")
    assert epic.completed_at == 30
    assert not update_epic_status(state, epic.id, "archived")
