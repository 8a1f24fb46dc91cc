from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

EmployeeRole = Literal["engineer", "designer", "pm", "marketer"]
SkillLevel = Literal["junior", "mid", "senior", "lead"]
EmployeeStatus = Literal["idle", "working", "blocked", "on_break"]
TaskType = Literal["feature", "bug", "design", "marketing", "infrastructure"]
TaskStatus = Literal["backlog", "todo", "in_progress", "review", "done"]
Priority = Literal["critical", "high", "medium", "low"]
MissionStatus = Literal["planning", "active", "review", "merging", "completed", "abandoned"]
EpicStatus = Literal["planned", "active", "completed", "blocked"]
ProductPhase = Literal["mvp", "growth", "scale", "mature"]
GameSpeed = Literal["paused", "normal", "fast", "turbo"]

ROLES: tuple[str, ...] = ("engineer", "designer", "pm", "marketer")
SKILL_LEVELS: tuple[str, ...] = ("junior", "mid", "senior", "lead")
TASK_TYPES: tuple[str, ...] = ("feature", "bug", "design", "marketing", "infrastructure")
TASK_STATUSES: tuple[str, ...] = ("backlog", "todo", "in_progress", "review", "done")
PRIORITIES: tuple[str, ...] = ("critical", "high", "medium", "low")
PRIORITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}

# Task statuses in which the assignee reference is populated.
ATTACHED_STATUSES: frozenset[str] = frozenset({"in_progress", "review"})
TERMINAL_MISSION_STATUSES: frozenset[str] = frozenset({"completed", "abandoned"})

INITIAL_MONEY = 100_000
TICKS_PER_DAY = 480
MEMORY_LIMIT = 50
ACTIVITY_LOG_LIMIT = 100
THOUGHT_LIMIT = 50
# Work is counted in hundredths of a tick; productivity 70 adds 70 units per tick.
WORK_UNITS_PER_TICK = 100


@dataclass
class AgentMemory:
    type: Literal["task", "learning", "preference", "context"]
    content: str
    importance: float = 0.5
    created_at: int = 0
    task_id: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class Employee:
    id: str
    name: str
    role: str
    skill_level: str
    salary: int
    productivity: float
    morale: float
    hired_at: int = 0
    status: str = "idle"
    current_task_id: str | None = None
    memory: list[AgentMemory] = field(default_factory=list)
    specializations: list[str] = field(default_factory=list)
    tasks_completed: int = 0
    total_ticks_worked: int = 0
    ai_model: str | None = None
    ai_provider: str | None = None


@dataclass
class Artifact:
    kind: str
    content: str
    files: list[str] = field(default_factory=list)
    model_used: str | None = None
    created_at: int = 0


@dataclass
class Task:
    id: str
    title: str
    description: str
    type: str
    priority: str
    estimated_ticks: int
    status: str = "todo"
    assignee_id: str | None = None
    progress_ticks: float = 0.0
    created_at: int = 0
    completed_at: int | None = None
    mission_id: str | None = None
    artifacts: list[Artifact] = field(default_factory=list)
    progress_units: int = 0

    @property
    def required_units(self) -> int:
        return self.estimated_ticks * WORK_UNITS_PER_TICK

    def add_work(self, units: int) -> bool:
        """Accrue work, capped at the estimate; True once the estimate is met."""
        self.progress_units = min(self.progress_units + max(0, units), self.required_units)
        self.progress_ticks = self.progress_units / WORK_UNITS_PER_TICK
        return self.progress_units >= self.required_units

    def fill_progress(self) -> None:
        self.progress_units = self.required_units
        self.progress_ticks = float(self.estimated_ticks)

    def attach(self, employee_id: str) -> None:
        self.status = "in_progress"
        self.assignee_id = employee_id

    def detach(self, status: str) -> None:
        self.status = status
        self.assignee_id = None


@dataclass
class MissionCommit:
    sha: str
    message: str
    files: list[str]
    tick: int
    task_id: str | None = None


@dataclass
class Mission:
    id: str
    name: str
    description: str
    priority: str
    branch_name: str
    base_branch: str = "main"
    status: str = "planning"
    task_ids: list[str] = field(default_factory=list)
    created_at: int = 0
    started_at: int | None = None
    completed_at: int | None = None
    commits: list[MissionCommit] = field(default_factory=list)
    pull_request_url: str | None = None
    pull_request_number: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_MISSION_STATUSES


@dataclass
class Epic:
    id: str
    name: str
    description: str
    priority: str
    phase: str
    status: str = "planned"
    mission_ids: list[str] = field(default_factory=list)
    created_at: int = 0
    completed_at: int | None = None


@dataclass
class QueuedTaskItem:
    id: str
    title: str
    description: str
    type: str
    priority: str
    source: str = "manual"
    labels: list[str] = field(default_factory=list)
    auto_assign: bool = True
    preferred_role: str | None = None
    status: str = "queued"
    position: int = 0
    external_id: str | None = None
    source_url: str | None = None
    assigned_task_id: str | None = None
    created_at: int = 0


@dataclass
class TaskQueueState:
    items: list[QueuedTaskItem] = field(default_factory=list)
    auto_assign_enabled: bool = True


@dataclass
class ProductState:
    phase: str = "mvp"
    has_auth: bool = False
    has_database: bool = False
    has_api: bool = False
    has_ui: bool = False
    has_landing: bool = False
    has_pricing: bool = False
    has_onboarding: bool = False
    has_analytics: bool = False
    has_testing: bool = False
    has_ci: bool = False
    has_documentation: bool = False
    feature_count: int = 0
    bug_count: int = 0
    tech_debt_score: int = 0
    user_feedback_score: int = 50


@dataclass
class PMThought:
    type: Literal["observation", "priority", "decision", "action"]
    message: str
    timestamp: int


@dataclass
class PMProposal:
    id: str
    type: Literal["mission", "hire", "priority", "tech", "pivot"]
    title: str
    description: str
    reasoning: str
    priority: str
    created_at: int = 0
    expires_at: int | None = None
    status: str = "pending"
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class PMBrainState:
    enabled: bool = True
    thoughts: list[PMThought] = field(default_factory=list)
    proposals: list[PMProposal] = field(default_factory=list)
    epics: list[Epic] = field(default_factory=list)
    product_state: ProductState | None = None
    last_evaluation: int | None = None
    evaluation_interval: int = 120


@dataclass
class Achievement:
    id: str
    name: str
    description: str
    category: str
    rarity: str
    unlocked: bool = False
    unlocked_at: int | None = None
    progress: int | None = None
    target: int | None = None
    secret: bool = False


@dataclass
class EventEffect:
    type: str
    value: float
    target: str | None = None
    duration: int | None = None


@dataclass
class ActiveEvent:
    event_id: str
    start_tick: int
    effects: list[EventEffect]
    end_tick: int | None = None
    choice_made: str | None = None
    resolved: bool = False


@dataclass
class Upgrade:
    id: str
    name: str
    description: str
    category: str
    cost: int
    unlocked: bool
    purchased: bool = False
    requires: list[str] = field(default_factory=list)
    effects: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ScheduledAction:
    due_tick: int
    action: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = ""


@dataclass
class ActivityEntry:
    tick: int
    message: str
    type: str
    employee_id: str | None = None
    task_id: str | None = None


@dataclass
class AIWorkItem:
    task_id: str
    employee_id: str
    priority: str
    status: Literal["queued", "running", "failed"] = "queued"
    error: str | None = None
    queued_at: int = 0


@dataclass
class AISettings:
    enabled: bool = False
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None


@dataclass
class Project:
    name: str
    idea: str
    created_at: int = 0


@dataclass
class GameStats:
    tasks_completed: int = 0
    bugs_fixed: int = 0
    features_shipped: int = 0
    commits_created: int = 0
    solo_completions: int = 0
    turbo_ticks: int = 0
    lowest_money: int = INITIAL_MONEY


@dataclass
class GameState:
    """Canonical mutable state shared by every simulation component."""

    tick: int = 0
    money: int = INITIAL_MONEY
    speed: str = "paused"
    project: Project | None = None
    employees: list[Employee] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    missions: list[Mission] = field(default_factory=list)
    active_mission_id: str | None = None
    task_queue: TaskQueueState = field(default_factory=TaskQueueState)
    pm_brain: PMBrainState = field(default_factory=PMBrainState)
    achievements: list[Achievement] = field(default_factory=list)
    active_events: list[ActiveEvent] = field(default_factory=list)
    upgrades: list[Upgrade] = field(default_factory=list)
    scheduled: list[ScheduledAction] = field(default_factory=list)
    activity_log: list[ActivityEntry] = field(default_factory=list)
    ai_settings: AISettings = field(default_factory=AISettings)
    ai_work_queue: list[AIWorkItem] = field(default_factory=list)
    autopilot: bool = False
    stats: GameStats = field(default_factory=GameStats)
    counters: dict[str, int] = field(default_factory=dict)

    def next_id(self, prefix: str) -> str:
        value = self.counters.get(prefix, 0) + 1
        self.counters[prefix] = value
        return f"{prefix}-{value}"

    def employee(self, employee_id: str | None) -> Employee | None:
        if employee_id is None:
            return None
        return next((e for e in self.employees if e.id == employee_id), None)

    def task(self, task_id: str | None) -> Task | None:
        if task_id is None:
            return None
        return next((t for t in self.tasks if t.id == task_id), None)

    def mission(self, mission_id: str | None) -> Mission | None:
        if mission_id is None:
            return None
        return next((m for m in self.missions if m.id == mission_id), None)

    def proposal(self, proposal_id: str) -> PMProposal | None:
        return next((p for p in self.pm_brain.proposals if p.id == proposal_id), None)

    def upgrade(self, upgrade_id: str) -> Upgrade | None:
        return next((u for u in self.upgrades if u.id == upgrade_id), None)

    @property
    def week(self) -> int:
        return self.tick // TICKS_PER_DAY // 7

    def done_tasks(self) -> list[Task]:
        return [t for t in self.tasks if t.status == "done"]

    def spend(self, amount: int) -> None:
        self.money = max(0, self.money - amount)
        self.stats.lowest_money = min(self.stats.lowest_money, self.money)

    def log(self, message: str, type: str, *, employee_id: str | None = None, task_id: str | None = None) -> None:
        entry = ActivityEntry(tick=self.tick, message=message, type=type, employee_id=employee_id, task_id=task_id)
        self.activity_log.insert(0, entry)
        del self.activity_log[ACTIVITY_LOG_LIMIT:]


def check_invariants(state: GameState) -> list[str]:
    """Return a description of every broken cross-reference between employees and tasks."""
    problems: list[str] = []
    for employee in state.employees:
        task = state.task(employee.current_task_id)
        attached = (
            task is not None
            and task.assignee_id == employee.id
            and task.status in ATTACHED_STATUSES
        )
        if (employee.status == "working") != attached:
            problems.append(
                f"employee {employee.id} status={employee.status} current_task={employee.current_task_id}"
            )
    for task in state.tasks:
        if (task.assignee_id is not None) != (task.status in ATTACHED_STATUSES):
            problems.append(f"task {task.id} status={task.status} assignee={task.assignee_id}")
        if task.assignee_id is not None:
            owner = state.employee(task.assignee_id)
            if owner is None or owner.current_task_id != task.id:
                problems.append(f"task {task.id} assignee {task.assignee_id} does not hold it")
        if not 0 <= task.progress_ticks <= task.estimated_ticks:
            problems.append(f"task {task.id} progress {task.progress_ticks}/{task.estimated_ticks}")
    for mission in state.missions:
        missing = [tid for tid in mission.task_ids if state.task(tid) is None]
        if missing:
            problems.append(f"mission {mission.id} references unknown tasks {missing}")
    return problems
