import random

from foundermode.employees.worker import EmployeeAgent, build_employee_context, build_task_brief
from foundermode.sim_manager.models import MEMORY_LIMIT, AgentMemory, Employee, GameState, Task
from foundermode.sim_manager.team import (
    add_employee_memory,
    boost_morale,
    get_employee_context,
    hire_employee,
    relevant_memories,
    salary_for,
    task_tags,
)


def _task(title="Build login flow", type_="feature"):
    return Task(id="task-1", title=title, description="Email and password", type=type_, priority="high", estimated_ticks=50)


def test_hiring_costs_and_limits():
    state = GameState()
    rng = random.Random(5)
    assert salary_for("marketer", "mid") == 6000
    assert salary_for("engineer", "lead") == 18000

    designer = hire_employee(state, "designer", "senior", rng, name="Harper Lee")
    assert designer.id == "emp-1"
    assert designer.name == "Harper Lee"
    assert designer.salary == 9800
    assert state.money == 100_000 - 9800
    assert 75 <= designer.productivity <= 95

    state.money = 1000
    assert hire_employee(state, "engineer", "mid", rng) is None
    assert hire_employee(state, "astronaut", "mid", rng) is None
    assert len(state.employees) == 1


def test_morale_boost():
    state = GameState()
    employee = hire_employee(state, "pm", "mid", random.Random(2))
    employee.morale = 90
    money = state.money
    assert boost_morale(state)
    assert employee.morale == 100
    assert state.money == money - 1000
    state.money = 999
    assert not boost_morale(state)


def test_memory_is_a_ring_buffer():
    state = GameState()
    employee = hire_employee(state, "engineer", "mid", random.Random(1))
    for index in range(MEMORY_LIMIT + 5):
        state.tick = index
        add_employee_memory(state, employee.id, AgentMemory(type="learning", content=f"note {index}"))
    assert len(employee.memory) == MEMORY_LIMIT
    assert employee.memory[0].content == "note 5"
    assert employee.memory[-1].created_at == MEMORY_LIMIT + 4
    assert not add_employee_memory(state, "emp-404", AgentMemory(type="learning", content="lost"))


def test_relevant_memories_prefer_overlap():
    state = GameState()
    employee = hire_employee(state, "engineer", "mid", random.Random(1))
    add_employee_memory(state, employee.id, AgentMemory(type="learning", content="Pricing page copy", importance=0.9, tags=["pricing"]))
    add_employee_memory(state, employee.id, AgentMemory(type="task", content="Shipped the login screen", importance=0.2, tags=["login"]))

    task = _task()
    assert task_tags(task) == ["feature", "login", "flow"]
    ranked = relevant_memories(employee, task, limit=1)
    assert ranked[0].content == "Shipped the login screen"
    assert relevant_memories(employee, None, limit=1)[0].content == "Pricing page copy"

    context = get_employee_context(state, employee.id, task)
    assert context.startswith(f"# {employee.name} - Engineer")
    assert "## Relevant Memories" in context
    assert "Shipped the login screen" in context
    assert get_employee_context(state, "emp-404") == ""


def test_context_markdown_defaults():
    employee = Employee(
        id="emp-1",
        name="Kai Chen",
        role="marketer",
        skill_level="junior",
        salary=4200,
        productivity=50,
        morale=80,
    )
    markdown = build_employee_context(employee, [])
    assert "Role: Marketer (junior)" in markdown
    assert "- None yet" in markdown
    assert "- No prior work on record." in markdown


def test_agent_prompt_includes_brief_and_guidelines():
    employee = Employee(
        id="emp-1",
        name="Kai Chen",
        role="designer",
        skill_level="mid",
        salary=7000,
        productivity=70,
        morale=80,
    )
    task = _task(title="Design pricing page", type_="design")
    agent = EmployeeAgent(employee, build_employee_context(employee, []), "Changelogs for SaaS teams")
    prompt = agent.as_prompt(task)

    assert [message["role"] for message in prompt] == ["system", "user"]
    assert "Note accessibility considerations." in prompt[0]["content"]
    assert "Product: Changelogs for SaaS teams" in prompt[1]["content"]
    assert prompt[1]["content"].startswith(build_task_brief(task, "Changelogs for SaaS teams"))
