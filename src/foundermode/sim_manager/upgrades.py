from __future__ import annotations

import logging

from .models import GameState, Upgrade

logger = logging.getLogger(__name__)

_CATALOGUE: tuple[tuple, ...] = (
    # id, name, description, category, cost, unlocked, requires, effects
    ("better-ide", "Better IDE", "+10% engineering productivity", "engineering", 5000, True, (),
     [{"type": "productivity", "value": 10, "target": "engineer"}]),
    ("ci-cd", "CI/CD Pipeline", "+15% task completion speed", "engineering", 10000, True, ("better-ide",),
     [{"type": "speed", "value": 15, "target": "all"}]),
    ("code-review", "Code Review Process", "+20% code quality, -5% speed", "engineering", 8000, True, (),
     [{"type": "quality", "value": 20, "target": "all"}, {"type": "speed", "value": -5, "target": "all"}]),
    ("testing-suite", "Automated Testing", "-30% bugs, +10% completion time", "engineering", 15000, False, ("ci-cd",),
     [{"type": "quality", "value": 30, "target": "all"}]),
    ("free-snacks", "Free Snacks", "+5% morale for all", "culture", 2000, True, (),
     [{"type": "morale", "value": 5, "target": "all"}]),
    ("remote-work", "Remote Work", "+10% morale, +5% productivity", "culture", 5000, True, ("free-snacks",),
     [{"type": "morale", "value": 10, "target": "all"}, {"type": "productivity", "value": 5, "target": "all"}]),
    ("equity-program", "Equity Program", "+20% morale, -10% salary cost", "culture", 20000, False, ("remote-work",),
     [{"type": "morale", "value": 20, "target": "all"}, {"type": "cost", "value": -10, "target": "all"}]),
    ("design-system", "Design System", "+25% designer productivity", "tools", 8000, True, (),
     [{"type": "productivity", "value": 25, "target": "designer"}]),
    ("analytics", "Analytics Platform", "+15% PM productivity", "tools", 6000, True, (),
     [{"type": "productivity", "value": 15, "target": "pm"}]),
    ("ai-copilot", "AI Copilot", "+30% all productivity", "tools", 50000, False, ("better-ide", "ci-cd", "testing-suite"),
     [{"type": "productivity", "value": 30, "target": "all"}]),
    ("standups", "Daily Standups", "+5% team coordination", "processes", 1000, True, (),
     [{"type": "speed", "value": 5, "target": "all"}]),
    ("sprints", "Sprint Planning", "+10% task estimation accuracy", "processes", 3000, True, ("standups",),
     [{"type": "speed", "value": 10, "target": "all"}]),
    ("okrs", "OKR Framework", "+15% all productivity", "processes", 10000, False, ("sprints",),
     [{"type": "productivity", "value": 15, "target": "all"}]),
)


def default_upgrades() -> list[Upgrade]:
    return [
        Upgrade(
            id=uid,
            name=name,
            description=description,
            category=category,
            cost=cost,
            unlocked=unlocked,
            requires=list(requires),
            effects=[dict(effect) for effect in effects],
        )
        for uid, name, description, category, cost, unlocked, requires, effects in _CATALOGUE
    ]


def purchase_upgrade(state: GameState, upgrade_id: str) -> bool:
    upgrade = state.upgrade(upgrade_id)
    if upgrade is None or upgrade.purchased or not upgrade.unlocked:
        return False
    if state.money < upgrade.cost:
        logger.debug("Cannot afford upgrade %s (%s > %s)", upgrade_id, upgrade.cost, state.money)
        return False
    upgrade.purchased = True
    state.spend(upgrade.cost)
    purchased = {u.id for u in state.upgrades if u.purchased}
    for candidate in state.upgrades:
        if upgrade_id in candidate.requires and all(req in purchased for req in candidate.requires):
            candidate.unlocked = True
    state.log(f"Purchased upgrade: {upgrade.name}", "money")
    return True


def purchased_count(state: GameState) -> int:
    return sum(1 for u in state.upgrades if u.purchased)
