from datetime import datetime

from foundermode.sim_manager.achievements import check_achievements, default_achievements, unlock_achievement
from foundermode.sim_manager.models import Employee, GameState, Project, Task
from foundermode.sim_manager.upgrades import default_upgrades, purchase_upgrade

NOON = datetime(2026, 5, 4, 12, 0)


def _state():
    return GameState(achievements=default_achievements(), upgrades=default_upgrades())


def _unlocked(state):
    return {a.id for a in state.achievements if a.unlocked}


def test_check_is_idempotent():
    state = _state()
    state.project = Project(name="Shiplog", idea="Changelogs")

    first = check_achievements(state, NOON)
    assert "first-steps" in first
    assert "the-idea" in first
    assert "first-dollar" in first
    log_size = len(state.activity_log)

    assert check_achievements(state, NOON) == []
    assert len(state.activity_log) == log_size
    unlocked_at = next(a for a in state.achievements if a.id == "first-steps").unlocked_at
    state.tick = 99
    check_achievements(state, NOON)
    assert next(a for a in state.achievements if a.id == "first-steps").unlocked_at == unlocked_at


def test_progress_counters_are_capped():
    state = _state()
    for index in range(7):
        state.tasks.append(
            Task(
                id=f"task-{index}",
                title=f"Bug {index}",
                description="",
                type="bug",
                priority="high",
                estimated_ticks=5,
                status="done",
                progress_ticks=5,
            )
        )
    unlocked = check_achievements(state, NOON)
    squasher = next(a for a in state.achievements if a.id == "bug-squasher")
    assert squasher.progress == 5
    assert "bug-squasher" in unlocked
    century = next(a for a in state.achievements if a.id == "century")
    assert century.progress == 7
    assert century.unlocked is False


def test_team_and_clock_rules():
    state = _state()
    for index, role in enumerate(("engineer", "designer", "pm", "marketer")):
        state.employees.append(
            Employee(
                id=f"emp-{index}",
                name=f"Person {index}",
                role=role,
                skill_level="senior",
                salary=1,
                productivity=80,
                morale=100,
            )
        )
    unlocked = set(check_achievements(state, NOON))
    assert {"first-hire", "full-stack-team", "senior-staff", "perfectionist"} <= unlocked
    assert "night-owl" not in unlocked
    assert "night-owl" in check_achievements(state, datetime(2026, 5, 4, 2, 30))


def test_manual_unlocks():
    state = _state()
    assert unlock_achievement(state, "easter-egg")
    assert not unlock_achievement(state, "easter-egg")
    assert not unlock_achievement(state, "not-a-thing")
    assert "easter-egg" in _unlocked(state)


def test_upgrade_chain():
    state = _state()
    assert not purchase_upgrade(state, "testing-suite")

    assert purchase_upgrade(state, "ci-cd")
    assert state.money == 90_000
    assert state.upgrade("testing-suite").unlocked is True
    assert not purchase_upgrade(state, "ci-cd")

    assert purchase_upgrade(state, "testing-suite")
    assert state.upgrade("ai-copilot").unlocked is False
    assert purchase_upgrade(state, "better-ide")
    assert state.upgrade("ai-copilot").unlocked is True

    state.money = 10
    assert not purchase_upgrade(state, "ai-copilot")
    assert not purchase_upgrade(state, "warp-drive")


def test_investor_counts_purchases():
    state = _state()
    for upgrade_id in ("free-snacks", "standups", "sprints", "analytics", "design-system"):
        assert purchase_upgrade(state, upgrade_id)
    assert "investor" in check_achievements(state, NOON)
