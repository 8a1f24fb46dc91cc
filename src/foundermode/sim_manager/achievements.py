from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .models import ROLES, Achievement, GameState
from .upgrades import purchased_count

logger = logging.getLogger(__name__)

_CATALOGUE: tuple[tuple, ...] = (
    # id, name, description, category, rarity, target, secret
    ("first-steps", "First Steps", "Start your first project", "founder", "common", None, False),
    ("the-idea", "The Idea", "Name your startup", "founder", "common", None, False),
    ("solo-founder", "Solo Founder", "Complete a task with no employees", "founder", "rare", None, True),
    ("first-hire", "First Hire", "Hire your first employee", "team", "common", None, False),
    ("full-stack-team", "Full Stack Team", "Have an engineer, designer, PM, and marketer", "team", "uncommon", None, False),
    ("dream-team", "Dream Team", "Have 5 employees with 80%+ morale", "team", "rare", None, False),
    ("senior-staff", "Senior Staff", "Have 3 senior or lead employees", "team", "rare", None, False),
    ("army", "Army of Builders", "Have 10 employees", "team", "epic", None, False),
    ("first-ship", "Ship It!", "Complete your first task", "shipping", "common", None, False),
    ("bug-squasher", "Bug Squasher", "Complete 5 bug fixes", "shipping", "uncommon", 5, False),
    ("feature-factory", "Feature Factory", "Complete 10 features", "shipping", "uncommon", 10, False),
    ("shipping-machine", "Shipping Machine", "Complete 50 tasks", "shipping", "rare", 50, False),
    ("century", "Century Club", "Complete 100 tasks", "shipping", "epic", 100, False),
    ("mvp", "MVP Ready", "Reach 50% project completion", "shipping", "uncommon", None, False),
    ("launch", "Launch Day!", "Reach 100% project completion", "shipping", "epic", None, False),
    ("first-dollar", "First Dollar", "Earn $1,000", "money", "common", None, False),
    ("profitable", "Profitable", "Have $100,000 in the bank", "money", "uncommon", None, False),
    ("unicorn", "Unicorn", "Have $1,000,000 in the bank", "money", "legendary", None, False),
    ("investor", "Investor Ready", "Purchase 5 upgrades", "money", "uncommon", 5, False),
    ("bootstrapped", "Bootstrapped", "Never go below $5,000", "money", "rare", None, True),
    ("speed-demon", "Speed Demon", "Complete a task in under 30 seconds", "speed", "rare", None, False),
    ("turbo-mode", "Turbo Mode", "Play at 3x speed for 5 minutes", "speed", "uncommon", None, False),
    ("all-nighter", "All-Nighter", "Play for 1 hour straight", "speed", "uncommon", None, False),
    ("marathon", "Marathon Session", "Reach Week 10", "speed", "rare", None, False),
    ("night-owl", "Night Owl", "Play between midnight and 5am", "secret", "rare", None, True),
    ("easter-egg", "Easter Egg", "Find the hidden secret", "secret", "legendary", None, True),
    ("perfectionist", "Perfectionist", "Have all employees at 100% morale", "secret", "legendary", None, True),
)

# 5 minutes of turbo ticks at 0.1s per tick
TURBO_TICKS_TARGET = 3000
BOOTSTRAPPED_FLOOR = 5000
BOOTSTRAPPED_WEEK = 4


def default_achievements() -> list[Achievement]:
    return [
        Achievement(
            id=aid,
            name=name,
            description=description,
            category=category,
            rarity=rarity,
            target=target,
            progress=0 if target is not None else None,
            secret=secret,
        )
        for aid, name, description, category, rarity, target, secret in _CATALOGUE
    ]


@dataclass(frozen=True)
class Snapshot:
    """Counts every predicate reads, computed once per check."""

    has_project: bool
    employees: int
    roles: frozenset[str]
    high_morale: int
    seniors: int
    all_max_morale: bool
    done: int
    bugs_fixed: int
    features_done: int
    total_tasks: int
    money: int
    upgrades: int
    week: int
    hour: int
    solo_completions: int
    turbo_ticks: int
    lowest_money: int

    @property
    def completion(self) -> float:
        return self.done / self.total_tasks * 100 if self.total_tasks else 0.0


def take_snapshot(state: GameState, now: datetime) -> Snapshot:
    done = state.done_tasks()
    employees = state.employees
    return Snapshot(
        has_project=state.project is not None,
        employees=len(employees),
        roles=frozenset(e.role for e in employees),
        high_morale=sum(1 for e in employees if e.morale >= 80),
        seniors=sum(1 for e in employees if e.skill_level in ("senior", "lead")),
        all_max_morale=bool(employees) and all(e.morale == 100 for e in employees),
        done=len(done),
        bugs_fixed=sum(1 for t in done if t.type == "bug"),
        features_done=sum(1 for t in done if t.type == "feature"),
        total_tasks=len(state.tasks),
        money=state.money,
        upgrades=purchased_count(state),
        week=state.week,
        hour=now.hour,
        solo_completions=state.stats.solo_completions,
        turbo_ticks=state.stats.turbo_ticks,
        lowest_money=state.stats.lowest_money,
    )


UNLOCK_RULES: dict[str, Callable[[Snapshot], bool]] = {
    "first-steps": lambda s: s.has_project,
    "the-idea": lambda s: s.has_project,
    "solo-founder": lambda s: s.solo_completions >= 1,
    "first-hire": lambda s: s.employees >= 1,
    "army": lambda s: s.employees >= 10,
    "full-stack-team": lambda s: set(ROLES) <= s.roles,
    "dream-team": lambda s: s.high_morale >= 5,
    "senior-staff": lambda s: s.seniors >= 3,
    "perfectionist": lambda s: s.all_max_morale,
    "first-ship": lambda s: s.done >= 1,
    "shipping-machine": lambda s: s.done >= 50,
    "century": lambda s: s.done >= 100,
    "bug-squasher": lambda s: s.bugs_fixed >= 5,
    "feature-factory": lambda s: s.features_done >= 10,
    "mvp": lambda s: s.completion >= 50,
    "launch": lambda s: s.total_tasks > 0 and s.completion >= 100,
    "first-dollar": lambda s: s.money >= 1000,
    "profitable": lambda s: s.money >= 100_000,
    "unicorn": lambda s: s.money >= 1_000_000,
    "investor": lambda s: s.upgrades >= 5,
    "bootstrapped": lambda s: s.week >= BOOTSTRAPPED_WEEK and s.lowest_money >= BOOTSTRAPPED_FLOOR,
    "turbo-mode": lambda s: s.turbo_ticks >= TURBO_TICKS_TARGET,
    "marathon": lambda s: s.week >= 10,
    "night-owl": lambda s: 0 <= s.hour < 5,
}

PROGRESS_COUNTERS: dict[str, Callable[[Snapshot], int]] = {
    "bug-squasher": lambda s: s.bugs_fixed,
    "feature-factory": lambda s: s.features_done,
    "shipping-machine": lambda s: s.done,
    "century": lambda s: s.done,
    "investor": lambda s: s.upgrades,
}


def unlock_achievement(state: GameState, achievement_id: str) -> bool:
    achievement = next((a for a in state.achievements if a.id == achievement_id), None)
    if achievement is None or achievement.unlocked:
        return False
    achievement.unlocked = True
    achievement.unlocked_at = state.tick
    state.log(f"Achievement unlocked: {achievement.name}", "system")
    logger.info("Achievement unlocked: %s", achievement_id)
    return True


def check_achievements(state: GameState, now: datetime | None = None) -> list[str]:
    """Re-evaluate every unlock rule and progress counter; returns ids unlocked by this call."""
    snapshot = take_snapshot(state, now or datetime.now())
    newly_unlocked: list[str] = []
    for achievement in state.achievements:
        counter = PROGRESS_COUNTERS.get(achievement.id)
        if counter is not None and achievement.target is not None:
            achievement.progress = min(counter(snapshot), achievement.target)
        rule = UNLOCK_RULES.get(achievement.id)
        if not achievement.unlocked and rule is not None and rule(snapshot):
            unlock_achievement(state, achievement.id)
            newly_unlocked.append(achievement.id)
    return newly_unlocked
