import random

from foundermode.sim_manager.events import (
    DEFAULT_EVENTS,
    EVENTS_BY_ID,
    Requirement,
    apply_event_effect,
    make_event_choice,
    pick_event,
    revert_effect,
    trigger_event,
)
from foundermode.sim_manager.models import Employee, EventEffect, GameState, Task


def _employee(state, productivity=50.0, morale=50.0):
    employee = Employee(
        id=state.next_id("emp"),
        name="Riley Moore",
        role="engineer",
        skill_level="mid",
        salary=10000,
        productivity=productivity,
        morale=morale,
    )
    state.employees.append(employee)
    return employee


def _done_tasks(state, count):
    for index in range(count):
        state.tasks.append(
            Task(
                id=state.next_id("task"),
                title=f"Shipped {index}",
                description="",
                type="feature",
                priority="medium",
                estimated_ticks=10,
                status="done",
                progress_ticks=10,
            )
        )


def test_catalogue_is_complete():
    assert len(DEFAULT_EVENTS) == 14
    assert len(EVENTS_BY_ID) == 14
    assert EVENTS_BY_ID["viral-tweet"].requirements == ()
    assert [r.describe() for r in EVENTS_BY_ID["investor-interest"].requirements] == ["tasks_done >= 10"]


def test_requirements():
    state = GameState()
    _done_tasks(state, 5)
    assert Requirement("tasks_done", ">=", 5).holds(state)
    assert not Requirement("tasks_done", ">=", 10).holds(state)
    assert Requirement("money", ">", 50_000).holds(state)
    assert Requirement("employees", "==", 0).holds(state)
    assert Requirement("week", "<", 1).holds(state)


def test_ineligible_events_are_never_picked():
    state = GameState()
    _done_tasks(state, 5)
    for _ in range(3):
        _employee(state)
    rng = random.Random(3)
    picked = set()
    for _ in range(500):
        event = pick_event(state, rng)
        if event is not None:
            picked.add(event.id)
    assert "investor-interest" not in picked
    assert "server-down" not in picked
    assert "production-bug" in picked


def test_effects_clamp_and_schedule_reverts():
    state = GameState()
    high = _employee(state, productivity=98, morale=95)
    rng = random.Random(0)

    apply_event_effect(state, EventEffect(type="morale", value=15, target="all"), rng)
    assert high.morale == 100

    state.tick = 10
    touched = apply_event_effect(state, EventEffect(type="productivity", value=-30, target="all", duration=480), rng)
    assert touched == [high.id]
    assert high.productivity == 68
    assert len(state.scheduled) == 1
    action = state.scheduled[0]
    assert action.due_tick == 490
    assert action.action == "revert_effect"

    revert_effect(state, action.payload)
    assert high.productivity == 98


def test_revert_undoes_only_the_clamped_change():
    state = GameState()
    low = _employee(state, productivity=20)
    peak = _employee(state, productivity=100)
    rng = random.Random(0)

    apply_event_effect(state, EventEffect(type="productivity", value=-30, target="all", duration=480), rng)
    assert low.productivity == 0
    assert peak.productivity == 70
    revert_effect(state, state.scheduled.pop().payload)
    assert low.productivity == 20
    assert peak.productivity == 100

    apply_event_effect(state, EventEffect(type="productivity", value=10, target="all", duration=240), rng)
    assert peak.productivity == 100
    revert_effect(state, state.scheduled.pop().payload)
    assert low.productivity == 20
    assert peak.productivity == 100

    # nothing changed, so nothing to undo later
    apply_event_effect(state, EventEffect(type="productivity", value=10, target=peak.id, duration=240), rng)
    assert state.scheduled == []


def test_money_effects():
    state = GameState()
    rng = random.Random(0)
    apply_event_effect(state, EventEffect(type="money", value=5000), rng)
    assert state.money == 105_000
    state.money = 300
    apply_event_effect(state, EventEffect(type="money", value=-500), rng)
    assert state.money == 0
    assert state.stats.lowest_money == 0


def test_employee_leave_effect():
    state = GameState()
    _employee(state)
    apply_event_effect(state, EventEffect(type="employee_leave", value=1, target="random"), random.Random(1))
    assert state.employees == []


def test_trigger_without_choices_resolves_immediately():
    state = GameState()
    _employee(state, morale=50)
    active = trigger_event(state, random.Random(0), "viral-tweet")
    assert active.resolved is True
    assert active.end_tick == 1
    assert state.money == 105_000
    assert state.employees[0].morale == 65


def test_event_choice_flow():
    state = GameState()
    _employee(state, morale=50)
    rng = random.Random(0)
    active = trigger_event(state, rng, "coffee-machine")
    assert active.resolved is False

    assert not make_event_choice(state, "coffee-machine", "espresso-bar", rng)
    state.money = 100
    assert not make_event_choice(state, "coffee-machine", "buy-new", rng)
    assert active.resolved is False

    state.money = 10_000
    assert make_event_choice(state, "coffee-machine", "buy-new", rng)
    assert active.resolved is True
    assert active.choice_made == "buy-new"
    assert state.money == 9_500
    assert state.employees[0].morale == 60

    # nothing left to resolve
    assert not make_event_choice(state, "coffee-machine", "starbucks", rng)
