from __future__ import annotations

import logging
import os
from typing import Callable, Protocol

from ..employees.worker import EmployeeAgent
from ..utils.completion_util import generate_text
from .models import PRIORITY_ORDER, AIWorkItem, Artifact, Employee, GameState, Task
from .team import get_employee_context

logger = logging.getLogger(__name__)

WorkTextGenerator = Callable[[list[dict[str, str]], str], tuple[str, int | None]]

DEFAULT_WORK_MODEL = os.getenv("FOUNDER_WORK_MODEL", "gpt-4o-mini")

ARTIFACT_KINDS: dict[str, str] = {
    "feature": "code",
    "bug": "code",
    "infrastructure": "code",
    "design": "design",
    "marketing": "copy",
}


class WorkGenerationError(RuntimeError):
    """Raised when turning a task into an artifact fails."""


class WorkGenerator(Protocol):
    def generate(
        self,
        task: Task,
        employee: Employee,
        employee_context: str,
        *,
        model: str | None = None,
        project_idea: str | None = None,
    ) -> Artifact:
        ...


class GPTWorkGenerator:
    """Work generator that asks an OpenAI chat model to produce the deliverable."""

    def __init__(
        self,
        generator: WorkTextGenerator | None = None,
        model: str = DEFAULT_WORK_MODEL,
        api_key: str | None = None,
    ) -> None:
        if generator is None:
            def _default(messages: list[dict[str, str]], model: str) -> tuple[str, int | None]:
                return generate_text(messages, model=model, api_key=self.api_key)

            self._generator = _default
        else:
            self._generator = generator
        self.model = model
        self.api_key = api_key

    def generate(
        self,
        task: Task,
        employee: Employee,
        employee_context: str,
        *,
        model: str | None = None,
        project_idea: str | None = None,
    ) -> Artifact:
        agent = EmployeeAgent(employee, employee_context, project_idea)
        model_used = model or self.model
        try:
            content, _tokens = self._generator(agent.as_prompt(task), model_used)
        except Exception as exc:
            raise WorkGenerationError(str(exc)) from exc
        if not content.strip():
            raise WorkGenerationError(f"Model {model_used} returned an empty deliverable")
        return Artifact(kind=ARTIFACT_KINDS.get(task.type, "code"), content=content.strip(), model_used=model_used)


class StubWorkGenerator:
    """Generator that produces deterministic artifacts without external calls."""

    def generate(
        self,
        task: Task,
        employee: Employee,
        employee_context: str,
        *,
        model: str | None = None,
        project_idea: str | None = None,
    ) -> Artifact:
        body = "\n".join([
            f"Deliverable: {task.title}",
            f"Author: {employee.name} ({employee.role})",
            f"Type: {task.type}",
            task.description or "(no description)",
        ])
        return Artifact(kind=ARTIFACT_KINDS.get(task.type, "code"), content=body, model_used=model or "founder-stub")


# ------------------------------------------------------------------
# AI settings + work queue
# ------------------------------------------------------------------

def resolve_ai_settings(state: GameState, employee: Employee) -> tuple[str, str]:
    """Provider and model for an employee: their own override wins, else the game default."""
    settings = state.ai_settings
    provider = employee.ai_provider or settings.provider
    model = employee.ai_model or settings.model
    return provider, model


def set_employee_ai(state: GameState, employee_id: str, provider: str | None, model: str | None) -> bool:
    employee = state.employee(employee_id)
    if employee is None:
        return False
    employee.ai_provider = provider or None
    employee.ai_model = model or None
    return True


def queue_ai_work(state: GameState, task_id: str, employee_id: str) -> AIWorkItem | None:
    task = state.task(task_id)
    employee = state.employee(employee_id)
    if task is None or employee is None or task.status != "in_progress" or task.assignee_id != employee.id:
        return None
    existing = next((item for item in state.ai_work_queue if item.task_id == task_id), None)
    if existing is not None:
        return existing
    item = AIWorkItem(task_id=task.id, employee_id=employee.id, priority=task.priority, queued_at=state.tick)
    state.ai_work_queue.append(item)
    # sort is stable, so equal priorities keep arrival order
    state.ai_work_queue.sort(key=lambda entry: PRIORITY_ORDER.get(entry.priority, len(PRIORITY_ORDER)))
    return item


def retry_ai_work(state: GameState, task_id: str) -> bool:
    item = next((entry for entry in state.ai_work_queue if entry.task_id == task_id), None)
    if item is None or item.status != "failed":
        return False
    item.status = "queued"
    item.error = None
    return True


def process_ai_work(
    state: GameState,
    generator: WorkGenerator,
) -> tuple[Task | None, str | None]:
    """Run the next queued work item.

    Returns ``(task, None)`` when an artifact was produced, ``(task, error)``
    when the generator failed and ``(None, None)`` when nothing was queued.
    """
    item = next((entry for entry in state.ai_work_queue if entry.status == "queued"), None)
    if item is None:
        return None, None
    task = state.task(item.task_id)
    employee = state.employee(item.employee_id)
    if task is None or employee is None or task.status != "in_progress" or task.assignee_id != employee.id:
        state.ai_work_queue.remove(item)
        logger.debug("Dropped stale AI work item for %s", item.task_id)
        return None, None

    _provider, model = resolve_ai_settings(state, employee)
    context = get_employee_context(state, employee.id, task)
    project_idea = state.project.idea if state.project else None
    item.status = "running"
    try:
        artifact = generator.generate(task, employee, context, model=model, project_idea=project_idea)
    except WorkGenerationError as exc:
        item.status = "failed"
        item.error = str(exc)
        logger.warning("Work generation failed for %s: %s", task.id, exc)
        state.log(f"AI work failed on {task.title}: {exc}", "error", employee_id=employee.id, task_id=task.id)
        return task, str(exc)

    artifact.created_at = state.tick
    task.artifacts.append(artifact)
    task.fill_progress()
    task.status = "review"
    state.ai_work_queue.remove(item)
    state.log(f"{employee.name} delivered {task.title}", "task", employee_id=employee.id, task_id=task.id)
    return task, None
