from __future__ import annotations

import logging
import random

from .assignment import create_task, update_task_status
from .models import Employee, GameState, Task
from .team import boost_morale, hire_employee

logger = logging.getLogger(__name__)

PM_TASK_IDEAS: tuple[tuple[str, str, str], ...] = (
    ("Add user authentication", "feature", "Implement login and signup with session handling."),
    ("Create landing page", "design", "Design a landing page that explains the product."),
    ("Set up database schema", "infrastructure", "Define tables and migrations for core entities."),
    ("Build REST API endpoints", "feature", "Expose CRUD endpoints for the main resources."),
    ("Fix login redirect bug", "bug", "Users are sent to a blank page after logging in."),
    ("Design onboarding flow", "design", "Walk new users through the first three steps."),
    ("Write launch blog post", "marketing", "Announce the product and its key features."),
    ("Add dark mode", "feature", "Support a dark colour scheme across the app."),
    ("Set up CI pipeline", "infrastructure", "Run tests and lint on every push."),
    ("Improve page load time", "bug", "The dashboard takes more than three seconds to render."),
    ("Create pricing page", "design", "Lay out plans and a comparison table."),
    ("Add email notifications", "feature", "Notify users when something they follow changes."),
    ("Social media campaign", "marketing", "Plan a week of posts around the next release."),
    ("Add search functionality", "feature", "Full-text search over the user's content."),
    ("Fix mobile layout issues", "bug", "Navigation overlaps content on small screens."),
    ("Set up error monitoring", "infrastructure", "Capture and alert on unhandled exceptions."),
    ("Design settings page", "design", "Group account, billing and notification settings."),
    ("Add analytics tracking", "feature", "Track activation and retention events."),
    ("Write API documentation", "infrastructure", "Document every public endpoint with examples."),
    ("Plan Product Hunt launch", "marketing", "Prepare assets and a launch-day checklist."),
)

TASKS_PER_PM: dict[str, int] = {"lead": 3, "senior": 3, "mid": 2, "junior": 1}
_IDEA_PRIORITIES = ("low", "medium", "medium", "high")
_HIRE_ORDER = ("engineer", "designer", "pm", "engineer")

AUTOPILOT_HIRE_FLOOR = 20_000
AUTOPILOT_MORALE_FLOOR = 5_000


def _idle_pm(state: GameState) -> Employee | None:
    pms = [e for e in state.employees if e.role == "pm"]
    return next((e for e in pms if e.status == "idle"), pms[0] if pms else None)


def pm_generate_tasks(state: GameState, rng: random.Random) -> list[Task]:
    """Have a PM write a handful of backlog tasks the team does not already have."""
    pm = _idle_pm(state)
    if pm is None:
        return []
    existing = {t.title.lower() for t in state.tasks}
    fresh = [idea for idea in PM_TASK_IDEAS if idea[0].lower() not in existing]
    if not fresh:
        return []
    picks = rng.sample(fresh, min(TASKS_PER_PM.get(pm.skill_level, 1), len(fresh)))
    created = []
    for title, type_, description in picks:
        created.append(
            create_task(
                state,
                title=title,
                description=description,
                type=type_,
                priority=rng.choice(_IDEA_PRIORITIES),
                status="backlog",
                estimated_ticks=60 + rng.randrange(80),
            )
        )
    state.log(f"{pm.name} planned {len(created)} new task(s)", "task", employee_id=pm.id)
    return created


def _missing_role(state: GameState) -> str:
    roles = [e.role for e in state.employees]
    for index, role in enumerate(_HIRE_ORDER):
        if roles.count(role) < _HIRE_ORDER[: index + 1].count(role):
            return role
    return "engineer"


def run_autopilot(state: GameState, rng: random.Random) -> list[str]:
    """Take the routine founder decisions; returns a short description of each action."""
    actions: list[str] = []

    if len(state.employees) < 3 and state.money > AUTOPILOT_HIRE_FLOOR:
        hired = hire_employee(state, _missing_role(state), "mid", rng)
        if hired is not None:
            actions.append(f"hired {hired.role} {hired.id}")

    queued = sum(1 for item in state.task_queue.items if item.status == "queued")
    open_tasks = sum(1 for t in state.tasks if t.status in ("todo", "backlog"))
    if queued < 2 and open_tasks < 3:
        for task in pm_generate_tasks(state, rng):
            actions.append(f"planned {task.id}")

    for task in [t for t in state.tasks if t.status == "review"]:
        if update_task_status(state, task.id, "done"):
            actions.append(f"approved {task.id}")

    if state.employees and state.money > AUTOPILOT_MORALE_FLOOR:
        mean_morale = sum(e.morale for e in state.employees) / len(state.employees)
        if mean_morale < 50 and boost_morale(state):
            actions.append("boosted morale")

    if actions:
        logger.debug("Autopilot at tick %s: %s", state.tick, ", ".join(actions))
    return actions
