from __future__ import annotations

import logging
import random
import re
from collections import Counter

from ..employees.worker import build_employee_context
from .models import (
    MEMORY_LIMIT,
    AgentMemory,
    Employee,
    GameState,
    Task,
)

logger = logging.getLogger(__name__)

BASE_SALARIES: dict[str, int] = {
    "pm": 8000,
    "designer": 7000,
    "engineer": 10000,
    "marketer": 6000,
}
SKILL_SALARY_MULTIPLIER: dict[str, float] = {"junior": 0.7, "mid": 1.0, "senior": 1.4, "lead": 1.8}
BASE_PRODUCTIVITY: dict[str, int] = {"junior": 50, "mid": 70, "senior": 85, "lead": 95}
ROLE_TITLES: dict[str, str] = {
    "pm": "Product Manager",
    "designer": "Designer",
    "engineer": "Engineer",
    "marketer": "Marketer",
}
MORALE_BOOST_COST = 1000
SPECIALIZATION_LIMIT = 5

FIRST_NAMES = (
    "Alex", "Jordan", "Sam", "Taylor", "Casey", "Morgan", "Riley", "Quinn",
    "Avery", "Charlie", "Dakota", "Finley", "Harper", "Hayden", "Jamie", "Jesse",
    "Kai", "Logan", "Max", "Parker", "Peyton", "Reese", "River", "Rowan",
)
LAST_NAMES = (
    "Chen", "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller",
    "Davis", "Rodriguez", "Martinez", "Anderson", "Taylor", "Thomas", "Moore", "Lee",
)

_WORD_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset({"the", "and", "for", "with", "add", "create", "build", "from", "into"})


def _random_stat(rng: random.Random, base: int, variance: int) -> int:
    return min(100, max(0, base + rng.randrange(variance * 2) - variance))


def salary_for(role: str, skill_level: str) -> int:
    return round(BASE_SALARIES[role] * SKILL_SALARY_MULTIPLIER[skill_level])


def hire_employee(state: GameState, role: str, skill_level: str, rng: random.Random, *, name: str | None = None) -> Employee | None:
    if role not in BASE_SALARIES or skill_level not in BASE_PRODUCTIVITY:
        logger.debug("Unknown role/skill combination %s/%s", role, skill_level)
        return None
    salary = salary_for(role, skill_level)
    if state.money < salary:
        logger.debug("Cannot hire %s %s: need %s, have %s", skill_level, role, salary, state.money)
        return None
    employee = Employee(
        id=state.next_id("emp"),
        name=name or f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
        role=role,
        skill_level=skill_level,
        salary=salary,
        productivity=_random_stat(rng, BASE_PRODUCTIVITY[skill_level], 10),
        morale=_random_stat(rng, 80, 15),
        hired_at=state.tick,
    )
    state.employees.append(employee)
    # first month's salary is paid up front
    state.spend(salary)
    state.log(f"Hired {employee.name} ({ROLE_TITLES[role]})", "hire", employee_id=employee.id)
    logger.info("Hired %s as %s %s (salary=%s)", employee.name, skill_level, role, salary)
    return employee


def fire_employee(state: GameState, employee_id: str) -> bool:
    employee = state.employee(employee_id)
    if employee is None:
        return False
    for task in state.tasks:
        if task.assignee_id == employee_id:
            task.detach("todo")
    state.employees.remove(employee)
    state.ai_work_queue = [item for item in state.ai_work_queue if item.employee_id != employee_id]
    state.log(f"{employee.name} has left the company", "hire", employee_id=employee_id)
    logger.info("Employee %s (%s) left", employee.name, employee_id)
    return True


def boost_morale(state: GameState) -> bool:
    if state.money < MORALE_BOOST_COST:
        return False
    for employee in state.employees:
        employee.morale = min(100, employee.morale + 20)
        employee.productivity = min(100, employee.productivity + 5)
    state.spend(MORALE_BOOST_COST)
    state.log("Team morale boosted with pizza party", "event")
    return True


# ------------------------------------------------------------------
# Agent memory

def add_employee_memory(state: GameState, employee_id: str, memory: AgentMemory) -> bool:
    employee = state.employee(employee_id)
    if employee is None:
        return False
    memory.created_at = state.tick
    employee.memory.append(memory)
    del employee.memory[:-MEMORY_LIMIT]
    return True


def update_employee_specializations(state: GameState, employee_id: str) -> list[str]:
    employee = state.employee(employee_id)
    if employee is None:
        return []
    counts = Counter(tag for memory in employee.memory for tag in memory.tags)
    employee.specializations = [tag for tag, _ in counts.most_common(SPECIALIZATION_LIMIT)]
    return employee.specializations


def task_tags(task: Task) -> list[str]:
    words = [w for w in _WORD_RE.findall(task.title.lower()) if len(w) > 2 and w not in _STOPWORDS]
    tags = [task.type]
    for word in words:
        if word not in tags:
            tags.append(word)
    return tags[:5]


def remember_completed_task(state: GameState, employee: Employee, task: Task) -> None:
    add_employee_memory(
        state,
        employee.id,
        AgentMemory(
            type="task",
            content=f"Completed {task.type} task: {task.title}",
            importance=0.8 if task.priority in ("critical", "high") else 0.5,
            task_id=task.id,
            tags=task_tags(task),
        ),
    )
    update_employee_specializations(state, employee.id)


def relevant_memories(employee: Employee, task: Task | None = None, limit: int = 5) -> list[AgentMemory]:
    if task is None:
        ranked = sorted(employee.memory, key=lambda m: m.importance, reverse=True)
        return ranked[:limit]
    keywords = set(task_tags(task))

    def score(memory: AgentMemory) -> tuple[int, float]:
        overlap = len(keywords.intersection(memory.tags))
        overlap += sum(1 for word in keywords if word in memory.content.lower())
        return overlap, memory.importance

    ranked = sorted(employee.memory, key=score, reverse=True)
    return ranked[:limit]


def get_employee_context(state: GameState, employee_id: str, task: Task | None = None) -> str:
    employee = state.employee(employee_id)
    if employee is None:
        return ""
    return build_employee_context(employee, relevant_memories(employee, task))

