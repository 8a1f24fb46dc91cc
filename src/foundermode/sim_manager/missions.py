from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Iterable

from .models import Epic, GameState, Mission, MissionCommit

logger = logging.getLogger(__name__)

MISSION_TRANSITIONS: dict[str, frozenset[str]] = {
    "planning": frozenset({"active", "abandoned"}),
    "active": frozenset({"review", "abandoned"}),
    "review": frozenset({"merging", "abandoned"}),
    "merging": frozenset({"completed", "abandoned"}),
    "completed": frozenset(),
    "abandoned": frozenset(),
}

EPIC_STATUSES = ("planned", "active", "completed", "blocked")

EPIC_TEMPLATES: tuple[dict[str, str], ...] = (
    {"name": "Foundation", "description": "Core infrastructure and authentication", "priority": "critical", "phase": "mvp"},
    {"name": "Core Product", "description": "Main product features and functionality", "priority": "critical", "phase": "mvp"},
    {"name": "Growth Engine", "description": "Marketing, onboarding, and user acquisition", "priority": "high", "phase": "growth"},
    {"name": "Monetization", "description": "Payments, subscriptions, and revenue", "priority": "high", "phase": "scale"},
    {"name": "Quality & Scale", "description": "Testing, CI/CD, and performance", "priority": "medium", "phase": "scale"},
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def branch_name_for(name: str) -> str:
    slug = _SLUG_RE.sub("-", name.lower()).rstrip("-")
    return f"mission/{slug}"


def can_transition(mission: Mission, status: str) -> bool:
    return status in MISSION_TRANSITIONS.get(mission.status, frozenset())


def create_mission(state: GameState, name: str, description: str = "", priority: str = "medium") -> Mission:
    mission = Mission(
        id=state.next_id("mission"),
        name=name,
        description=description,
        priority=priority,
        branch_name=branch_name_for(name),
        created_at=state.tick,
    )
    state.missions.append(mission)
    state.log(f"Mission created: {name} ({mission.branch_name})", "project")
    logger.info("Created mission %s on %s", mission.id, mission.branch_name)
    return mission


def update_mission_status(state: GameState, mission_id: str, status: str) -> bool:
    mission = state.mission(mission_id)
    if mission is None or not can_transition(mission, status):
        logger.debug("Rejected mission transition %s -> %s", mission_id, status)
        return False
    mission.status = status
    if status == "active" and mission.started_at is None:
        mission.started_at = state.tick
    if mission.is_terminal:
        mission.completed_at = state.tick
        if status == "completed":
            state.stats.features_shipped += 1
        if state.active_mission_id == mission.id:
            state.active_mission_id = None
    return True


def start_mission(state: GameState, mission_id: str) -> bool:
    mission = state.mission(mission_id)
    if mission is None or mission.status != "planning":
        return False
    update_mission_status(state, mission_id, "active")
    # focus moves; previously focused missions keep their own status
    state.active_mission_id = mission.id
    state.log(f"Mission started: {mission.name}", "project")
    return True


def set_mission_pr(state: GameState, mission_id: str, url: str, number: int) -> bool:
    mission = state.mission(mission_id)
    if mission is None or mission.status != "active":
        return False
    mission.pull_request_url = url
    mission.pull_request_number = number
    return update_mission_status(state, mission_id, "review")


def abandon_mission(state: GameState, mission_id: str) -> bool:
    mission = state.mission(mission_id)
    if mission is None or mission.is_terminal:
        return False
    update_mission_status(state, mission_id, "abandoned")
    state.log(f"Mission abandoned: {mission.name}", "project")
    return True


def complete_mission(state: GameState, mission_id: str) -> bool:
    mission = state.mission(mission_id)
    if mission is None or mission.status not in ("review", "merging"):
        return False
    if mission.status == "review":
        update_mission_status(state, mission_id, "merging")
    update_mission_status(state, mission_id, "completed")
    state.log(f"Mission shipped: {mission.name}", "complete")
    logger.info("Mission %s completed (features shipped=%s)", mission.id, state.stats.features_shipped)
    return True


def add_task_to_mission(state: GameState, mission_id: str, task_id: str) -> bool:
    mission = state.mission(mission_id)
    task = state.task(task_id)
    if mission is None or task is None or mission.is_terminal or task_id in mission.task_ids:
        return False
    mission.task_ids.append(task_id)
    task.mission_id = mission.id
    return True


def remove_task_from_mission(state: GameState, mission_id: str, task_id: str) -> bool:
    mission = state.mission(mission_id)
    if mission is None or mission.is_terminal or task_id not in mission.task_ids:
        return False
    mission.task_ids.remove(task_id)
    task = state.task(task_id)
    if task is not None and task.mission_id == mission.id:
        task.mission_id = None
    return True


def create_mission_with_tasks(
    state: GameState,
    name: str,
    description: str,
    priority: str,
    tasks: Iterable[dict[str, Any]],
) -> Mission:
    from .assignment import create_task

    mission = create_mission(state, name, description, priority)
    for row in tasks:
        task = create_task(
            state,
            title=row["title"],
            description=row.get("description") or f"Part of mission: {name}",
            type=row.get("type", "feature"),
            priority=row.get("priority", priority),
            status="todo",
            estimated_ticks=int(row.get("estimated_ticks", row.get("estimatedTicks", 100))),
        )
        add_task_to_mission(state, mission.id, task.id)
    return mission


def add_mission_commit(
    state: GameState,
    mission_id: str,
    message: str,
    files: Iterable[str] = (),
    task_id: str | None = None,
) -> MissionCommit | None:
    mission = state.mission(mission_id)
    if mission is None or mission.is_terminal:
        return None
    digest = hashlib.sha1(f"{mission.id}:{len(mission.commits)}:{message}".encode("utf-8")).hexdigest()
    commit = MissionCommit(sha=digest[:7], message=message, files=list(files), tick=state.tick, task_id=task_id)
    mission.commits.append(commit)
    state.stats.commits_created += 1
    return commit


def sync_mission_after_task(state: GameState, mission_id: str | None) -> bool:
    """Move an active mission to review once every owned task is done."""
    mission = state.mission(mission_id)
    if mission is None or mission.status != "active" or not mission.task_ids:
        return False
    tasks = [state.task(tid) for tid in mission.task_ids]
    if all(task is not None and task.status == "done" for task in tasks):
        return update_mission_status(state, mission.id, "review")
    return False


# ------------------------------------------------------------------
# Epics

def create_epic(
    state: GameState,
    name: str,
    description: str = "",
    priority: str = "medium",
    phase: str = "mvp",
) -> Epic:
    template = next((t for t in EPIC_TEMPLATES if t["name"].lower() == name.lower()), None)
    if template is not None:
        description = description or template["description"]
        priority = template["priority"]
        phase = template["phase"]
    epic = Epic(
        id=state.next_id("epic"),
        name=name,
        description=description,
        priority=priority,
        phase=phase,
        created_at=state.tick,
    )
    state.pm_brain.epics.append(epic)
    return epic


def _epic(state: GameState, epic_id: str) -> Epic | None:
    return next((e for e in state.pm_brain.epics if e.id == epic_id), None)


def add_mission_to_epic(state: GameState, epic_id: str, mission_id: str) -> bool:
    epic = _epic(state, epic_id)
    if epic is None or state.mission(mission_id) is None or mission_id in epic.mission_ids:
        return False
    epic.mission_ids.append(mission_id)
    return True


def update_epic_status(state: GameState, epic_id: str, status: str) -> bool:
    epic = _epic(state, epic_id)
    if epic is None or status not in EPIC_STATUSES:
        return False
    epic.status = status
    epic.completed_at = state.tick if status == "completed" else None
    return True
