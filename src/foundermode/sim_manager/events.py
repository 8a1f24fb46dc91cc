"""Random event catalogue, requirement predicates and effect application."""
from __future__ import annotations

import logging
import operator
import random
from dataclasses import dataclass, field
from typing import Callable

from .models import ActiveEvent, EventEffect, GameState, ScheduledAction
from .team import fire_employee

logger = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
}


@dataclass(frozen=True)
class Requirement:
    kind: str  # money | employees | tasks_done | week
    op: str
    value: float

    def measure(self, state: GameState) -> float:
        if self.kind == "money":
            return state.money
        if self.kind == "employees":
            return len(state.employees)
        if self.kind == "tasks_done":
            return len(state.done_tasks())
        if self.kind == "week":
            return state.week
        raise ValueError(f"Unknown requirement kind: {self.kind}")

    def holds(self, state: GameState) -> bool:
        return OPERATORS[self.op](self.measure(state), self.value)

    def describe(self) -> str:
        return f"{self.kind} {self.op} {self.value:g}"


@dataclass(frozen=True)
class EventChoice:
    id: str
    label: str
    description: str
    effects: tuple[EventEffect, ...]
    cost: int = 0


@dataclass(frozen=True)
class GameEvent:
    id: str
    name: str
    description: str
    category: str  # opportunity | challenge | neutral | crisis
    probability: float
    effects: tuple[EventEffect, ...] = ()
    choices: tuple[EventChoice, ...] = ()
    requirements: tuple[Requirement, ...] = field(default_factory=tuple)

    def eligible(self, state: GameState) -> bool:
        return all(req.holds(state) for req in self.requirements)


def _fx(type_: str, value: float, target: str | None = None, duration: int | None = None) -> EventEffect:
    return EventEffect(type=type_, value=value, target=target, duration=duration)


def _req(kind: str, op: str, value: float) -> Requirement:
    return Requirement(kind, op, value)


DEFAULT_EVENTS: tuple[GameEvent, ...] = (
    GameEvent(
        "viral-tweet", "Viral Tweet!",
        "Your product got mentioned by a tech influencer! Morale is through the roof.",
        "opportunity", 0.3,
        effects=(_fx("morale", 15, "all"), _fx("money", 5000)),
    ),
    GameEvent(
        "investor-interest", "Investor Interest", "A VC wants to chat about your startup!",
        "opportunity", 0.2,
        requirements=(_req("tasks_done", ">=", 10),),
        choices=(
            EventChoice("take-meeting", "Take the meeting", "Spend time but might get funding",
                        (_fx("productivity", -10, "all", 480), _fx("money", 25000))),
            EventChoice("focus-product", "Stay focused on product", "Keep building, investors can wait",
                        (_fx("morale", 5, "all"), _fx("productivity", 10, "all", 240))),
        ),
    ),
    GameEvent(
        "hackathon-win", "Hackathon Win!", "Your team won a local hackathon!",
        "opportunity", 0.15,
        requirements=(_req("employees", ">=", 2),),
        effects=(_fx("money", 10000), _fx("morale", 20, "all")),
    ),
    GameEvent(
        "great-review", "Great Code Review", "An engineer wrote exceptionally clean code today.",
        "opportunity", 0.4,
        requirements=(_req("employees", ">=", 1),),
        effects=(_fx("morale", 10, "random"), _fx("productivity", 5, "random", 480)),
    ),
    GameEvent(
        "referral-bonus", "Employee Referral", "Your employee referred a friend. Hiring them is discounted!",
        "opportunity", 0.25,
        requirements=(_req("employees", ">=", 2),),
        effects=(_fx("money", 3000),),
    ),
    GameEvent(
        "production-bug", "Production Bug!", "A critical bug was found in production. All hands on deck!",
        "challenge", 0.35,
        requirements=(_req("tasks_done", ">=", 5),),
        effects=(_fx("morale", -10, "all"), _fx("task_speed", -20, "all", 240)),
        choices=(
            EventChoice("overtime", "Work overtime to fix it", "Fix fast but hurt morale",
                        (_fx("morale", -15, "all"), _fx("task_speed", 30, "all", 120))),
            EventChoice("steady-fix", "Fix it properly", "Take time to do it right",
                        (_fx("task_speed", -10, "all", 480),)),
        ),
    ),
    GameEvent(
        "employee-burnout", "Burnout Warning", "An employee is showing signs of burnout.",
        "challenge", 0.3,
        requirements=(_req("employees", ">=", 1),),
        effects=(_fx("morale", -20, "random"), _fx("productivity", -30, "random", 480)),
        choices=(
            EventChoice("vacation", "Give them time off", "Paid vacation, they'll recover",
                        (_fx("money", -2000), _fx("morale", 30, "random")), cost=2000),
            EventChoice("push-through", "Push through", "Risk them quitting",
                        (_fx("morale", -10, "random"),)),
        ),
    ),
    GameEvent(
        "server-down", "Servers Down!", "Your infrastructure is having issues.",
        "challenge", 0.2,
        requirements=(_req("week", ">=", 2),),
        effects=(_fx("task_speed", -50, "all", 120),),
        choices=(
            EventChoice("pay-premium", "Pay for premium support", "Expensive but fast",
                        (_fx("money", -5000),), cost=5000),
            EventChoice("diy-fix", "Fix it ourselves", "Engineers work on infra",
                        (_fx("task_speed", -30, "all", 240),)),
        ),
    ),
    GameEvent(
        "competitor-launch", "Competitor Launch", "A competitor just launched something similar!",
        "challenge", 0.15,
        requirements=(_req("week", ">=", 3),),
        effects=(_fx("morale", -5, "all"),),
        choices=(
            EventChoice("pivot", "Pivot slightly", "Differentiate from them",
                        (_fx("productivity", -20, "all", 480), _fx("morale", 10, "all"))),
            EventChoice("stay-course", "Stay the course", "We were here first!",
                        (_fx("productivity", 10, "all", 240),)),
        ),
    ),
    GameEvent(
        "coffee-machine", "Coffee Machine Broke", "The office coffee machine is broken.",
        "neutral", 0.4,
        effects=(_fx("productivity", -5, "all", 120),),
        choices=(
            EventChoice("buy-new", "Buy a fancy new one", "$500 but everyone's happy",
                        (_fx("money", -500), _fx("morale", 10, "all")), cost=500),
            EventChoice("starbucks", "Send people to Starbucks", "Expense it!",
                        (_fx("money", -200),), cost=200),
        ),
    ),
    GameEvent(
        "team-lunch", "Team Lunch", "Someone suggested a team lunch.",
        "neutral", 0.35,
        requirements=(_req("employees", ">=", 2),),
        choices=(
            EventChoice("fancy", "Go somewhere fancy", "$50 per person",
                        (_fx("money", -500), _fx("morale", 15, "all")), cost=500),
            EventChoice("pizza", "Order pizza", "Classic startup move",
                        (_fx("money", -100), _fx("morale", 5, "all")), cost=100),
            EventChoice("skip", "Skip it, we're busy", "Stay focused",
                        (_fx("morale", -5, "all"),)),
        ),
    ),
    GameEvent(
        "remote-friday", "Remote Friday?", "Team wants to work from home on Friday.",
        "neutral", 0.3,
        requirements=(_req("employees", ">=", 1),),
        choices=(
            EventChoice("allow", "Allow it", "Happy team!",
                        (_fx("morale", 10, "all"), _fx("productivity", -5, "all", 480))),
            EventChoice("deny", "Need everyone in office", "Important week",
                        (_fx("morale", -10, "all"), _fx("productivity", 5, "all", 480))),
        ),
    ),
    GameEvent(
        "key-employee-quit", "Key Employee Quitting!", "Your best performer is considering leaving!",
        "crisis", 0.1,
        requirements=(_req("employees", ">=", 3),),
        choices=(
            EventChoice("counter-offer", "Make a counter offer", "Raise their salary 50%",
                        (_fx("money", -5000), _fx("morale", 20, "random")), cost=5000),
            EventChoice("let-go", "Wish them well", "They might leave",
                        (_fx("employee_leave", 1, "random"), _fx("morale", -15, "all"))),
        ),
    ),
    GameEvent(
        "data-breach", "Security Incident!", "A potential security vulnerability was discovered.",
        "crisis", 0.1,
        requirements=(_req("week", ">=", 4),),
        effects=(_fx("task_speed", -100, "all", 60),),
        choices=(
            EventChoice("security-audit", "Full security audit", "Expensive but thorough",
                        (_fx("money", -10000), _fx("morale", 10, "all")), cost=10000),
            EventChoice("quick-patch", "Quick patch", "Fix it and move on",
                        (_fx("task_speed", -30, "all", 240),)),
        ),
    ),
)

EVENTS_BY_ID: dict[str, GameEvent] = {event.id: event for event in DEFAULT_EVENTS}


def _resolve_targets(state: GameState, target: str | None, rng: random.Random) -> list[str]:
    if not state.employees:
        return []
    if target in (None, "all"):
        return [e.id for e in state.employees]
    if target == "random":
        return [rng.choice(state.employees).id]
    by_id = state.employee(target)
    if by_id is not None:
        return [by_id.id]
    return [e.id for e in state.employees if e.role == target]


def _adjust(state: GameState, employee_ids: list[str], attr: str, delta: float) -> dict[str, float]:
    """Shift a 0-100 stat; returns the change actually applied per employee after clamping."""
    applied: dict[str, float] = {}
    for employee_id in employee_ids:
        employee = state.employee(employee_id)
        if employee is not None:
            before = getattr(employee, attr)
            setattr(employee, attr, max(0, min(100, before + delta)))
            applied[employee_id] = getattr(employee, attr) - before
    return applied


def apply_event_effect(state: GameState, effect: EventEffect, rng: random.Random) -> list[str]:
    """Apply one effect; returns the ids of employees it touched."""
    if effect.type == "money":
        if effect.value < 0:
            state.spend(int(-effect.value))
        else:
            state.money += int(effect.value)
        return []
    if effect.type in ("morale", "productivity"):
        targets = _resolve_targets(state, effect.target, rng)
        applied = _adjust(state, targets, effect.type, effect.value)
        if effect.type == "productivity" and effect.duration and any(applied.values()):
            state.scheduled.append(
                ScheduledAction(
                    due_tick=state.tick + effect.duration,
                    action="revert_effect",
                    payload={"type": effect.type, "deltas": {eid: -delta for eid, delta in applied.items() if delta}},
                    id=state.next_id("sched"),
                )
            )
        return targets
    if effect.type == "employee_leave":
        leaving: list[str] = []
        for _ in range(int(effect.value)):
            targets = _resolve_targets(state, effect.target or "random", rng)
            if not targets:
                break
            fire_employee(state, targets[0])
            leaving.append(targets[0])
        return leaving
    logger.debug("Effect %s has no state effect", effect.type)
    return []


def revert_effect(state: GameState, payload: dict) -> None:
    for employee_id, delta in payload.get("deltas", {}).items():
        _adjust(state, [employee_id], payload["type"], float(delta))


def expire_event(state: GameState, payload: dict) -> None:
    state.active_events = [
        ae for ae in state.active_events
        if not (ae.event_id == payload.get("event_id") and ae.start_tick == payload.get("start_tick") and ae.resolved)
    ]


def _schedule_expiry(state: GameState, active: ActiveEvent, effects: tuple[EventEffect, ...]) -> None:
    span = max((e.duration or 0 for e in effects), default=0)
    active.end_tick = state.tick + max(1, span)
    state.scheduled.append(
        ScheduledAction(
            due_tick=active.end_tick,
            action="expire_event",
            payload={"event_id": active.event_id, "start_tick": active.start_tick},
            id=state.next_id("sched"),
        )
    )


def pick_event(state: GameState, rng: random.Random) -> GameEvent | None:
    survivors = [e for e in DEFAULT_EVENTS if e.eligible(state) and rng.random() < e.probability]
    if not survivors:
        return None
    return rng.choice(survivors)


def trigger_event(state: GameState, rng: random.Random, event_id: str | None = None) -> ActiveEvent | None:
    event = EVENTS_BY_ID.get(event_id) if event_id else pick_event(state, rng)
    if event is None:
        return None
    active = ActiveEvent(event_id=event.id, start_tick=state.tick, effects=list(event.effects))
    state.active_events.append(active)
    state.log(f"Event: {event.name}", "event")
    logger.info("Event %s triggered at tick %s", event.id, state.tick)
    if not event.choices:
        for effect in event.effects:
            apply_event_effect(state, effect, rng)
        active.resolved = True
        _schedule_expiry(state, active, event.effects)
    return active


def make_event_choice(state: GameState, event_id: str, choice_id: str, rng: random.Random) -> bool:
    event = EVENTS_BY_ID.get(event_id)
    if event is None:
        return False
    choice = next((c for c in event.choices if c.id == choice_id), None)
    active = next((ae for ae in reversed(state.active_events) if ae.event_id == event_id and not ae.resolved), None)
    if choice is None or active is None:
        return False
    if choice.cost and state.money < choice.cost:
        logger.debug("Choice %s/%s rejected: costs %s, have %s", event_id, choice_id, choice.cost, state.money)
        return False
    for effect in choice.effects:
        apply_event_effect(state, effect, rng)
    active.choice_made = choice.id
    active.resolved = True
    _schedule_expiry(state, active, choice.effects)
    state.log(f"Choice made: {choice.label}", "event")
    return True
