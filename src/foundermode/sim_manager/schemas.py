from __future__ import annotations

from typing import Any, Literal, Sequence

from pydantic import BaseModel, Field

RoleLiteral = Literal["engineer", "designer", "pm", "marketer"]
SkillLiteral = Literal["junior", "mid", "senior", "lead"]
TaskTypeLiteral = Literal["feature", "bug", "design", "marketing", "infrastructure"]
TaskStatusLiteral = Literal["backlog", "todo", "in_progress", "review", "done"]
PriorityLiteral = Literal["critical", "high", "medium", "low"]
SpeedLiteral = Literal["paused", "normal", "fast", "turbo"]
EpicStatusLiteral = Literal["planned", "active", "completed", "blocked"]
PhaseLiteral = Literal["mvp", "growth", "scale", "mature"]


# ------------------------------------------------------------------
# Game + clock
# ------------------------------------------------------------------

class ProjectStartRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    idea: str = Field(..., min_length=1)


class ProjectRead(BaseModel):
    name: str
    idea: str
    created_at: int


class GameStatsRead(BaseModel):
    tasks_completed: int
    bugs_fixed: int
    features_shipped: int
    commits_created: int
    solo_completions: int
    turbo_ticks: int
    lowest_money: int


class GameStateRead(BaseModel):
    tick: int
    week: int
    money: int
    speed: SpeedLiteral
    auto_tick: bool
    autopilot: bool
    project: ProjectRead | None = None
    employee_count: int
    task_counts: dict[str, int]
    queued_items: int
    active_mission_id: str | None = None
    pm_enabled: bool
    pending_proposals: int
    stats: GameStatsRead


class SpeedRequest(BaseModel):
    speed: SpeedLiteral


class AdvanceRequest(BaseModel):
    ticks: int = Field(..., gt=0, le=4800)
    reason: str = Field(default="manual", max_length=128)


class AdvanceResult(BaseModel):
    ticks_advanced: int
    current_tick: int
    tasks_to_review: list[str] = Field(default_factory=list)
    assigned_from_queue: list[str] = Field(default_factory=list)
    achievements_unlocked: list[str] = Field(default_factory=list)
    events_triggered: list[str] = Field(default_factory=list)


class ControlResponse(BaseModel):
    tick: int
    speed: SpeedLiteral
    auto_tick: bool
    message: str


# ------------------------------------------------------------------
# Team
# ------------------------------------------------------------------

class HireRequest(BaseModel):
    role: RoleLiteral
    skill_level: SkillLiteral = "mid"
    name: str | None = None


class MemoryCreate(BaseModel):
    type: Literal["task", "learning", "preference", "context"] = "learning"
    content: str = Field(..., min_length=1)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    tags: Sequence[str] = Field(default_factory=list)


class MemoryRead(BaseModel):
    type: str
    content: str
    importance: float
    created_at: int
    task_id: str | None = None
    tags: list[str]


class EmployeeRead(BaseModel):
    id: str
    name: str
    role: RoleLiteral
    skill_level: SkillLiteral
    salary: int
    productivity: float
    morale: float
    hired_at: int
    status: str
    current_task_id: str | None = None
    specializations: list[str]
    tasks_completed: int
    total_ticks_worked: int
    ai_model: str | None = None
    ai_provider: str | None = None
    memory: list[MemoryRead] = Field(default_factory=list)


class EmployeeContextRead(BaseModel):
    employee_id: str
    context: str


class EmployeeAIUpdate(BaseModel):
    provider: str | None = None
    model: str | None = None


# ------------------------------------------------------------------
# Tasks
# ------------------------------------------------------------------

class ArtifactRead(BaseModel):
    kind: str
    content: str
    files: list[str]
    model_used: str | None = None
    created_at: int


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    type: TaskTypeLiteral = "feature"
    priority: PriorityLiteral = "medium"
    status: Literal["backlog", "todo", "done"] = "todo"
    estimated_ticks: int = Field(default=100, gt=0)
    mission_id: str | None = None


class TaskRead(BaseModel):
    id: str
    title: str
    description: str
    type: TaskTypeLiteral
    priority: PriorityLiteral
    estimated_ticks: int
    status: TaskStatusLiteral
    assignee_id: str | None = None
    progress_ticks: float
    created_at: int
    completed_at: int | None = None
    mission_id: str | None = None
    artifacts: list[ArtifactRead] = Field(default_factory=list)


class AssignRequest(BaseModel):
    employee_id: str


class TaskStatusUpdate(BaseModel):
    status: TaskStatusLiteral


class TaskPriorityUpdate(BaseModel):
    priority: PriorityLiteral


# ------------------------------------------------------------------
# Queue
# ------------------------------------------------------------------

class QueueItemCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    type: TaskTypeLiteral = "feature"
    priority: PriorityLiteral = "medium"
    labels: Sequence[str] = Field(default_factory=list)
    auto_assign: bool = True
    preferred_role: RoleLiteral | None = None


class QueueItemRead(BaseModel):
    id: str
    title: str
    description: str
    type: TaskTypeLiteral
    priority: PriorityLiteral
    source: str
    labels: list[str]
    auto_assign: bool
    preferred_role: str | None = None
    status: Literal["queued", "assigned"]
    position: int
    external_id: str | None = None
    source_url: str | None = None
    assigned_task_id: str | None = None
    created_at: int


class QueueRead(BaseModel):
    auto_assign_enabled: bool
    items: list[QueueItemRead]


class QueueReorderRequest(BaseModel):
    position: int = Field(..., ge=0)


class TrackerImportRequest(BaseModel):
    source: str | None = Field(default=None, description="owner/repo for GitHub, team id for Linear")
    issues: list[dict[str, Any]] | None = Field(default=None, description="Raw issues; fetched from the tracker when omitted")
    auto_assign: bool = True
    limit: int = Field(default=50, ge=1, le=100)


# ------------------------------------------------------------------
# Missions + epics
# ------------------------------------------------------------------

class MissionTaskIn(BaseModel):
    title: str = Field(..., min_length=1)
    type: TaskTypeLiteral = "feature"
    estimated_ticks: int = Field(default=100, gt=0)
    description: str | None = None


class MissionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str = ""
    priority: PriorityLiteral = "medium"
    tasks: Sequence[MissionTaskIn] | None = None


class MissionCommitRead(BaseModel):
    sha: str
    message: str
    files: list[str]
    tick: int
    task_id: str | None = None


class MissionRead(BaseModel):
    id: str
    name: str
    description: str
    priority: PriorityLiteral
    branch_name: str
    base_branch: str
    status: Literal["planning", "active", "review", "merging", "completed", "abandoned"]
    task_ids: list[str]
    created_at: int
    started_at: int | None = None
    completed_at: int | None = None
    commits: list[MissionCommitRead] = Field(default_factory=list)
    pull_request_url: str | None = None
    pull_request_number: int | None = None


class MissionPRRequest(BaseModel):
    url: str = Field(..., min_length=1)
    number: int = Field(..., gt=0)


class MissionCommitCreate(BaseModel):
    message: str = Field(..., min_length=1)
    files: Sequence[str] = Field(default_factory=list)
    task_id: str | None = None


class MissionTaskLink(BaseModel):
    task_id: str


class EpicCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    priority: PriorityLiteral = "medium"
    phase: PhaseLiteral = "mvp"


class EpicRead(BaseModel):
    id: str
    name: str
    description: str
    priority: PriorityLiteral
    phase: PhaseLiteral
    status: EpicStatusLiteral
    mission_ids: list[str]
    created_at: int
    completed_at: int | None = None


class EpicMissionLink(BaseModel):
    mission_id: str


class EpicStatusUpdate(BaseModel):
    status: EpicStatusLiteral


# ------------------------------------------------------------------
# PM brain
# ------------------------------------------------------------------

class ProductStateRead(BaseModel):
    phase: PhaseLiteral
    has_auth: bool
    has_database: bool
    has_api: bool
    has_ui: bool
    has_landing: bool
    has_pricing: bool
    has_onboarding: bool
    has_analytics: bool
    has_testing: bool
    has_ci: bool
    has_documentation: bool
    feature_count: int
    bug_count: int
    tech_debt_score: int
    user_feedback_score: int


class PMThoughtRead(BaseModel):
    type: Literal["observation", "priority", "decision", "action"]
    message: str
    timestamp: int


class ProposalRead(BaseModel):
    id: str
    type: Literal["mission", "hire", "priority", "tech", "pivot"]
    title: str
    description: str
    reasoning: str
    priority: PriorityLiteral
    created_at: int
    expires_at: int | None = None
    status: Literal["pending", "approved", "rejected", "expired"]
    payload: dict[str, Any]


class PMBrainRead(BaseModel):
    enabled: bool
    last_evaluation: int | None = None
    evaluation_interval: int
    product_state: ProductStateRead | None = None
    thoughts: list[PMThoughtRead]
    proposals: list[ProposalRead]


class PMEvaluationRequest(BaseModel):
    force: bool = True
    max_missions: int = Field(default=3, ge=1, le=12)


# ------------------------------------------------------------------
# Achievements, events, upgrades
# ------------------------------------------------------------------

class AchievementRead(BaseModel):
    id: str
    name: str
    description: str
    category: str
    rarity: str
    unlocked: bool
    unlocked_at: int | None = None
    progress: int | None = None
    target: int | None = None
    secret: bool


class EventEffectRead(BaseModel):
    type: str
    value: float
    target: str | None = None
    duration: int | None = None


class EventChoiceRead(BaseModel):
    id: str
    label: str
    description: str
    cost: int
    effects: list[EventEffectRead]


class EventDefinitionRead(BaseModel):
    id: str
    name: str
    description: str
    category: str
    probability: float
    requirements: list[str]
    effects: list[EventEffectRead]
    choices: list[EventChoiceRead]


class ActiveEventRead(BaseModel):
    event_id: str
    start_tick: int
    end_tick: int | None = None
    choice_made: str | None = None
    resolved: bool
    effects: list[EventEffectRead]


class EventTriggerRequest(BaseModel):
    event_id: str | None = None


class EventChoiceRequest(BaseModel):
    choice_id: str


class UpgradeRead(BaseModel):
    id: str
    name: str
    description: str
    category: str
    cost: int
    unlocked: bool
    purchased: bool
    requires: list[str]
    effects: list[dict[str, Any]]


# ------------------------------------------------------------------
# AI work, activity, saves
# ------------------------------------------------------------------

class AISettingsUpdate(BaseModel):
    enabled: bool | None = None
    provider: str | None = None
    model: str | None = None
    api_key: str | None = None


class AISettingsRead(BaseModel):
    enabled: bool
    provider: str
    model: str
    has_api_key: bool


class AIWorkItemRead(BaseModel):
    task_id: str
    employee_id: str
    priority: PriorityLiteral
    status: Literal["queued", "running", "failed"]
    error: str | None = None
    queued_at: int


class AIWorkResult(BaseModel):
    task_id: str | None = None
    status: Literal["idle", "completed", "failed"]
    error: str | None = None


class ActivityRead(BaseModel):
    tick: int
    message: str
    type: str
    employee_id: str | None = None
    task_id: str | None = None


class SaveRequest(BaseModel):
    slot: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")


class SaveRead(BaseModel):
    slot: str
    tick: int
    money: int
    saved_at: str
