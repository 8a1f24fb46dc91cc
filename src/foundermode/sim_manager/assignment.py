from __future__ import annotations

import logging

from .missions import sync_mission_after_task
from .models import (
    ATTACHED_STATUSES,
    PRIORITIES,
    TASK_STATUSES,
    TASK_TYPES,
    Artifact,
    GameState,
    Task,
)
from .team import remember_completed_task

logger = logging.getLogger(__name__)

ASSIGNABLE_STATUSES = frozenset({"backlog", "todo"})


def create_task(
    state: GameState,
    *,
    title: str,
    description: str = "",
    type: str = "feature",
    priority: str = "medium",
    status: str = "todo",
    estimated_ticks: int = 100,
    mission_id: str | None = None,
) -> Task:
    if type not in TASK_TYPES:
        type = "feature"
    if priority not in PRIORITIES:
        priority = "medium"
    # only assign() may put a task in flight
    if status not in TASK_STATUSES or status in ATTACHED_STATUSES:
        status = "todo"
    task = Task(
        id=state.next_id("task"),
        title=title,
        description=description,
        type=type,
        priority=priority,
        estimated_ticks=max(1, int(estimated_ticks)),
        status=status,
        created_at=state.tick,
        completed_at=state.tick if status == "done" else None,
    )
    state.tasks.append(task)
    if mission_id is not None:
        mission = state.mission(mission_id)
        if mission is not None and not mission.is_terminal:
            mission.task_ids.append(task.id)
            task.mission_id = mission.id
    state.log(f"Created task: {task.title}", "task", task_id=task.id)
    return task


def assign_task(state: GameState, task_id: str, employee_id: str) -> bool:
    task = state.task(task_id)
    employee = state.employee(employee_id)
    if task is None or employee is None:
        logger.debug("assign ignored: unknown task %s or employee %s", task_id, employee_id)
        return False
    if task.assignee_id is not None or task.status not in ASSIGNABLE_STATUSES:
        logger.debug("assign ignored: task %s is %s (assignee=%s)", task_id, task.status, task.assignee_id)
        return False
    if employee.current_task_id is not None:
        logger.debug("assign ignored: employee %s already holds %s", employee_id, employee.current_task_id)
        return False
    task.attach(employee.id)
    employee.status = "working"
    employee.current_task_id = task.id
    state.log(f"{employee.name} started \"{task.title}\"", "task", employee_id=employee.id, task_id=task.id)
    return True


def _release(state: GameState, task: Task) -> None:
    employee = state.employee(task.assignee_id)
    if employee is not None and employee.current_task_id == task.id:
        employee.current_task_id = None
        employee.status = "idle"


def unassign_task(state: GameState, task_id: str) -> bool:
    task = state.task(task_id)
    if task is None or task.assignee_id is None:
        return False
    _release(state, task)
    task.detach("todo")
    state.ai_work_queue = [item for item in state.ai_work_queue if item.task_id != task_id]
    return True


def advance_progress(state: GameState) -> list[Task]:
    """Accrue one tick of work on every in-flight task; returns tasks that moved to review."""
    finished: list[Task] = []
    for task in state.tasks:
        if task.status != "in_progress":
            continue
        assignee = state.employee(task.assignee_id)
        if assignee is None:
            continue
        assignee.total_ticks_worked += 1
        if task.add_work(round(assignee.productivity)):
            # the assignee stays attached until the review is approved
            task.status = "review"
            finished.append(task)
            state.log(
                f"{assignee.name} finished \"{task.title}\" -> ready for review",
                "work",
                employee_id=assignee.id,
                task_id=task.id,
            )
    return finished


def update_task_status(state: GameState, task_id: str, status: str) -> bool:
    task = state.task(task_id)
    if task is None or status not in TASK_STATUSES or task.status == status:
        return False
    # only assign() starts work, and completed work stays completed
    if status == "in_progress" or task.status == "done":
        return False
    if status == "review":
        if task.status != "in_progress":
            return False
        task.fill_progress()
        task.status = "review"
        return True
    if status == "done":
        _complete(state, task)
        return True
    # back to backlog/todo
    if task.assignee_id is not None:
        _release(state, task)
    task.detach(status)
    return True


def _complete(state: GameState, task: Task) -> None:
    employee = state.employee(task.assignee_id)
    if task.assignee_id is not None:
        _release(state, task)
    task.detach("done")
    task.completed_at = state.tick
    state.stats.tasks_completed += 1
    if task.type == "bug":
        state.stats.bugs_fixed += 1
    if employee is not None:
        employee.tasks_completed += 1
        remember_completed_task(state, employee, task)
    if not state.employees:
        state.stats.solo_completions += 1
    state.log(f"Completed: \"{task.title}\"", "complete", task_id=task.id)
    sync_mission_after_task(state, task.mission_id)


def add_task_artifact(state: GameState, task_id: str, artifact: Artifact) -> bool:
    task = state.task(task_id)
    if task is None:
        return False
    artifact.created_at = state.tick
    task.artifacts.append(artifact)
    return True


def set_task_priority(state: GameState, task_id: str, priority: str) -> bool:
    task = state.task(task_id)
    if task is None or priority not in PRIORITIES:
        return False
    task.priority = priority
    return True
