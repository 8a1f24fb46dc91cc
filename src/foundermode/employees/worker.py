from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

if TYPE_CHECKING:
    from ..sim_manager.models import AgentMemory, Employee, Task

ROLE_TITLES: Mapping[str, str] = {
    "engineer": "Engineer",
    "designer": "Designer",
    "pm": "Product Manager",
    "marketer": "Marketer",
}

ROLE_GUIDELINES: Mapping[str, Sequence[str]] = {
    "engineer": (
        "Ship working code in small, reviewable increments.",
        "List every file you create or modify.",
        "Call out missing tests or follow-up refactors.",
    ),
    "designer": (
        "Describe layout, spacing and typography decisions.",
        "Provide CSS or component markup that can be dropped in.",
        "Note accessibility considerations.",
    ),
    "pm": (
        "Break work into concrete, estimable tasks.",
        "State acceptance criteria for each item.",
        "Flag dependencies and sequencing risks.",
    ),
    "marketer": (
        "Write copy in the product's voice.",
        "Offer a headline, supporting copy and a call to action.",
        "Suggest one channel to test first.",
    ),
}


def _format_bullets(items: Iterable[str], prefix: str = "- ") -> str:
    cleaned = [item.strip() for item in items if item and item.strip()]
    return "\n".join(f"{prefix}{entry}" for entry in cleaned) if cleaned else "- None yet"


def _render_memories(memories: Sequence[AgentMemory]) -> str:
    if not memories:
        return "- No prior work on record."
    lines = []
    for memory in memories:
        tags = f" [{', '.join(memory.tags)}]" if memory.tags else ""
        lines.append(f"- ({memory.type}, importance {memory.importance:.1f}) {memory.content}{tags}")
    return "\n".join(lines)


def build_employee_context(employee: Employee, memories: Sequence[AgentMemory]) -> str:
    title = ROLE_TITLES.get(employee.role, employee.role.title())
    template = f"# {employee.name} - {title}\n\n"
    template += "## Experience\n"
    template += _format_bullets(
        (
            f"Role: {title} ({employee.skill_level})",
            f"Tasks Completed: {employee.tasks_completed}",
            f"Ticks worked: {employee.total_ticks_worked}",
            f"Productivity: {employee.productivity:.0f}/100, morale: {employee.morale:.0f}/100",
        )
    )
    template += "\n\n## Specializations\n"
    template += _format_bullets(employee.specializations)
    template += "\n\n## Relevant Memories\n"
    template += _render_memories(memories)
    template += "\n"
    return template


def build_task_brief(task: Task, project_idea: str | None = None) -> str:
    lines = [
        f"Task: {task.title}",
        f"Type: {task.type}, priority: {task.priority}",
    ]
    if project_idea:
        lines.append(f"Product: {project_idea}")
    if task.description:
        lines.extend(["", task.description])
    return "\n".join(lines)


class EmployeeAgent:
    """Prompt builder for one employee working on one task."""

    def __init__(self, employee: Employee, context: str, project_idea: str | None = None):
        self.employee = employee
        self.context = context
        self.project_idea = project_idea
        self.guidelines = ROLE_GUIDELINES.get(employee.role, ())

    def as_prompt(self, task: Task) -> list[dict[str, str]]:
        system = self.context
        system += "\n## Working Agreements\n" + _format_bullets(self.guidelines) + "\n"
        system += (
            "\nWrite as this person would at a small startup. "
            "Do not mention being an AI or a simulation."
        )
        user = build_task_brief(task, self.project_idea)
        user += "\n\nProduce the deliverable for this task."
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
