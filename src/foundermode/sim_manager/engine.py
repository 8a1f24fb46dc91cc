from __future__ import annotations

import copy
import logging
import os
import random
import threading
import time
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

import httpx

from . import snapshots
from .achievements import check_achievements, default_achievements, unlock_achievement
from .assignment import (
    advance_progress,
    assign_task,
    create_task,
    set_task_priority,
    unassign_task,
    update_task_status,
)
from .autopilot import run_autopilot
from .events import DEFAULT_EVENTS, EVENTS_BY_ID, expire_event, make_event_choice, revert_effect, trigger_event
from .gateways import IssueGateway
from .generator import (
    GPTWorkGenerator,
    StubWorkGenerator,
    WorkGenerator,
    process_ai_work,
    queue_ai_work,
    retry_ai_work,
    set_employee_ai,
)
from .missions import (
    abandon_mission,
    add_mission_commit,
    add_mission_to_epic,
    add_task_to_mission,
    complete_mission,
    create_epic,
    create_mission,
    create_mission_with_tasks,
    remove_task_from_mission,
    set_mission_pr,
    start_mission,
    update_epic_status,
)
from .models import (
    Achievement,
    ActiveEvent,
    ActivityEntry,
    AgentMemory,
    AISettings,
    AIWorkItem,
    Employee,
    Epic,
    GameState,
    Mission,
    MissionCommit,
    PMBrainState,
    PMProposal,
    Project,
    QueuedTaskItem,
    Task,
    Upgrade,
    check_invariants,
)
from .pm_brain import (
    approve_proposal,
    dismiss_proposal,
    get_pending_proposals,
    reject_proposal,
    run_pm_evaluation,
    toggle_pm_brain,
)
from .schemas import AdvanceResult, GameStateRead
from .task_queue import (
    clear_queue,
    enqueue,
    import_github_issues,
    import_linear_issues,
    process_queue,
    remove_from_queue,
    reorder_queue,
    toggle_auto_assign,
)
from .team import add_employee_memory, boost_morale, fire_employee, get_employee_context, hire_employee
from .upgrades import default_upgrades, purchase_upgrade

logger = logging.getLogger(__name__)

# Seconds between automatic ticks, as a fraction of the base interval.
SPEED_FACTORS: dict[str, float] = {"normal": 1.0, "fast": 0.33, "turbo": 0.1}

SCHEDULED_ACTIONS: dict[str, Callable[[GameState, dict], None]] = {
    "revert_effect": revert_effect,
    "expire_event": expire_event,
}

SPEED_DEMON_SECONDS = 30.0
ALL_NIGHTER_SECONDS = 3600.0


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes", "on"}


def new_game_state() -> GameState:
    return GameState(achievements=default_achievements(), upgrades=default_upgrades())


class SimulationEngine:
    """Owns one ``GameState`` and serializes every read and command on it.

    The state functions in ``assignment``, ``missions``, ``pm_brain`` and the
    other modules are total: unknown ids make them return ``False`` or
    ``None``. This class is the command surface for the HTTP layer and checks
    ids first, raising ``KeyError`` so a missing entity becomes a 404 instead
    of a generic rejection. Read accessors return copies taken under the lock.
    Callers that want the non-raising behaviour call the state functions on
    ``engine.state`` directly, which is only safe while auto ticks are stopped.
    """

    def __init__(
        self,
        generator: WorkGenerator | None = None,
        github_gateway: IssueGateway | None = None,
        linear_gateway: IssueGateway | None = None,
        tick_interval_seconds: float = 1.0,
        random_seed: int | None = None,
        event_interval: int | None = None,
        autopilot_interval: int | None = None,
        pm_evaluation_interval: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if generator is None:
            generator = StubWorkGenerator() if _env_flag("FOUNDER_USE_STUB_GENERATOR") else GPTWorkGenerator()
        self.generator = generator
        self.github_gateway = github_gateway
        self.linear_gateway = linear_gateway
        self._tick_interval_seconds = tick_interval_seconds
        self.event_interval = event_interval or _env_int("FOUNDER_EVENT_INTERVAL", 240)
        self.autopilot_interval = autopilot_interval or _env_int("FOUNDER_AUTOPILOT_INTERVAL", 60)
        self.pm_evaluation_interval = pm_evaluation_interval or _env_int("FOUNDER_PM_EVALUATION_INTERVAL", 120)
        if random_seed is None:
            raw_seed = os.getenv("FOUNDER_RANDOM_SEED")
            try:
                random_seed = int(raw_seed) if raw_seed else None
            except ValueError:
                random_seed = None
        self._seed = random_seed
        self._random = random.Random(random_seed)
        self._clock = clock or datetime.now
        self._auto_tick_thread: threading.Thread | None = None
        self._auto_tick_stop: threading.Event | None = None
        self._auto_tick_started_at: float | None = None
        self._lock = threading.Lock()
        self._assigned_at: dict[str, float] = {}
        self.state = self._fresh_state()
        snapshots.ensure_schema()

    def _fresh_state(self) -> GameState:
        state = new_game_state()
        state.pm_brain.evaluation_interval = self.pm_evaluation_interval
        return state

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_employee(self, employee_id: str) -> Employee:
        employee = self.state.employee(employee_id)
        if employee is None:
            raise KeyError(f"Employee {employee_id} not found")
        return employee

    def _require_task(self, task_id: str) -> Task:
        task = self.state.task(task_id)
        if task is None:
            raise KeyError(f"Task {task_id} not found")
        return task

    def _require_mission(self, mission_id: str) -> Mission:
        mission = self.state.mission(mission_id)
        if mission is None:
            raise KeyError(f"Mission {mission_id} not found")
        return mission

    def _require_epic(self, epic_id: str) -> Epic:
        epic = next((e for e in self.state.pm_brain.epics if e.id == epic_id), None)
        if epic is None:
            raise KeyError(f"Epic {epic_id} not found")
        return epic

    def _require_proposal(self, proposal_id: str) -> None:
        if self.state.proposal(proposal_id) is None:
            raise KeyError(f"Proposal {proposal_id} not found")

    def _require_queue_item(self, item_id: str) -> QueuedTaskItem:
        item = next((i for i in self.state.task_queue.items if i.id == item_id), None)
        if item is None:
            raise KeyError(f"Queue item {item_id} not found")
        return item

    # ------------------------------------------------------------------
    # Game lifecycle
    # ------------------------------------------------------------------

    def get_state(self) -> GameStateRead:
        with self._lock:
            state = self.state
            counts = Counter(t.status for t in state.tasks)
            return GameStateRead(
                tick=state.tick,
                week=state.week,
                money=state.money,
                speed=state.speed,
                auto_tick=self.auto_ticking,
                autopilot=state.autopilot,
                project=vars(state.project) if state.project else None,
                employee_count=len(state.employees),
                task_counts={status: counts.get(status, 0) for status in ("backlog", "todo", "in_progress", "review", "done")},
                queued_items=sum(1 for i in state.task_queue.items if i.status == "queued"),
                active_mission_id=state.active_mission_id,
                pm_enabled=state.pm_brain.enabled,
                pending_proposals=len(get_pending_proposals(state)),
                stats=vars(state.stats),
            )

    def start_project(self, name: str, idea: str) -> GameStateRead:
        with self._lock:
            if self.state.project is not None:
                raise RuntimeError("A project is already running; reset the game first")
            self.state.project = Project(name=name.strip(), idea=idea.strip(), created_at=self.state.tick)
            self.state.log(f"Started project {self.state.project.name}", "project")
            check_achievements(self.state, self._clock())
            logger.info("Project %s started", self.state.project.name)
        return self.get_state()

    def activity(self, limit: int = 50) -> list[ActivityEntry]:
        with self._lock:
            return list(self.state.activity_log[:limit])

    def reset(self) -> GameStateRead:
        self.stop_auto_ticks()
        with self._lock:
            api_key = self.state.ai_settings.api_key
            self.state = self._fresh_state()
            self.state.ai_settings.api_key = api_key
            self._random = random.Random(self._seed)
            self._assigned_at.clear()
        logger.info("Game reset")
        return self.get_state()

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    @property
    def auto_ticking(self) -> bool:
        thread = self._auto_tick_thread
        return thread is not None and thread.is_alive()

    def tick_interval(self, speed: str | None = None) -> float | None:
        factor = SPEED_FACTORS.get(speed or self.state.speed)
        if factor is None:
            return None
        return self._tick_interval_seconds * factor

    def set_speed(self, speed: str) -> GameStateRead:
        if speed not in ("paused", *SPEED_FACTORS):
            raise ValueError(f"Unknown speed {speed}")
        with self._lock:
            self.state.speed = speed
        if speed == "paused":
            self.stop_auto_ticks()
        elif not self.auto_ticking:
            self.start_auto_ticks()
        return self.get_state()

    def start_auto_ticks(self) -> GameStateRead:
        if self.auto_ticking:
            raise RuntimeError("Automatic ticks are already running")
        if self.state.speed == "paused":
            raise RuntimeError("Game is paused; choose a speed before enabling automatic ticks")
        stop_event = threading.Event()
        self._auto_tick_stop = stop_event
        thread = threading.Thread(
            target=self._run_auto_tick_loop,
            args=(stop_event,),
            name="founder-auto-tick",
            daemon=True,
        )
        self._auto_tick_thread = thread
        self._auto_tick_started_at = time.monotonic()
        thread.start()
        logger.info("Automatic ticks started at %s speed", self.state.speed)
        return self.get_state()

    def stop_auto_ticks(self) -> GameStateRead:
        stop_event = self._auto_tick_stop
        if stop_event is not None:
            stop_event.set()
        thread = self._auto_tick_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Automatic tick thread did not exit cleanly within timeout")
        self._auto_tick_thread = None
        self._auto_tick_stop = None
        self._auto_tick_started_at = None
        return self.get_state()

    def _run_auto_tick_loop(self, stop_event: threading.Event) -> None:
        while True:
            interval = self.tick_interval()
            if interval is None or stop_event.wait(interval):
                break
            try:
                self.tick()
            except Exception:  # pragma: no cover - keep the server alive
                logger.exception("Automatic tick failed; stopping automatic ticks.")
                break
            started = self._auto_tick_started_at
            if started is not None and time.monotonic() - started >= ALL_NIGHTER_SECONDS:
                with self._lock:
                    unlock_achievement(self.state, "all-nighter")

    def tick(self) -> AdvanceResult | None:
        """One clock step; a no-op while paused."""
        with self._lock:
            if self.state.speed == "paused":
                return None
            result = AdvanceResult(ticks_advanced=0, current_tick=self.state.tick)
            self._step(result)
            return result

    def advance(self, ticks: int, reason: str = "manual") -> AdvanceResult:
        if ticks <= 0:
            raise ValueError("Ticks must be positive")
        with self._lock:
            result = AdvanceResult(ticks_advanced=0, current_tick=self.state.tick)
            for _ in range(ticks):
                self._step(result)
            logger.debug("Advanced %s tick(s) (%s) to %s", ticks, reason, self.state.tick)
            return result

    def _step(self, result: AdvanceResult) -> None:
        state = self.state
        state.tick += 1
        if state.speed == "turbo":
            state.stats.turbo_ticks += 1
        self._run_scheduled()
        for task in advance_progress(state):
            result.tasks_to_review.append(task.id)
        for item in process_queue(state):
            result.assigned_from_queue.append(item.id)
            if item.assigned_task_id:
                self._on_assigned(item.assigned_task_id)
        run_pm_evaluation(state)
        if state.autopilot and state.tick % self.autopilot_interval == 0:
            run_autopilot(state, self._random)
        result.achievements_unlocked.extend(check_achievements(state, self._clock()))
        if state.tick % self.event_interval == 0:
            active = trigger_event(state, self._random)
            if active is not None:
                result.events_triggered.append(active.event_id)
        result.ticks_advanced += 1
        result.current_tick = state.tick

    def _run_scheduled(self) -> None:
        state = self.state
        due = [action for action in state.scheduled if action.due_tick <= state.tick]
        if not due:
            return
        state.scheduled = [action for action in state.scheduled if action.due_tick > state.tick]
        for action in due:
            handler = SCHEDULED_ACTIONS.get(action.action)
            if handler is None:
                logger.warning("Dropping scheduled action with unknown type %s", action.action)
                continue
            handler(state, action.payload)

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    def list_employees(self) -> list[Employee]:
        with self._lock:
            return list(self.state.employees)

    def get_employee(self, employee_id: str) -> Employee:
        with self._lock:
            return self._require_employee(employee_id)

    def hire(self, role: str, skill_level: str = "mid", name: str | None = None) -> Employee:
        with self._lock:
            employee = hire_employee(self.state, role, skill_level, self._random, name=name)
            if employee is None:
                raise RuntimeError(f"Cannot afford a {skill_level} {role}")
            return employee

    def fire(self, employee_id: str) -> None:
        with self._lock:
            self._require_employee(employee_id)
            fire_employee(self.state, employee_id)

    def boost_morale(self) -> bool:
        with self._lock:
            return boost_morale(self.state)

    def add_memory(self, employee_id: str, memory: AgentMemory) -> Employee:
        with self._lock:
            employee = self._require_employee(employee_id)
            add_employee_memory(self.state, employee_id, memory)
            return employee

    def employee_context(self, employee_id: str, task_id: str | None = None) -> str:
        with self._lock:
            self._require_employee(employee_id)
            task = self._require_task(task_id) if task_id else None
            return get_employee_context(self.state, employee_id, task)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self, status: str | None = None) -> list[Task]:
        with self._lock:
            return [t for t in self.state.tasks if status is None or t.status == status]

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return self._require_task(task_id)

    def create_task(self, **fields: Any) -> Task:
        with self._lock:
            mission_id = fields.get("mission_id")
            if mission_id is not None:
                self._require_mission(mission_id)
            return create_task(self.state, **fields)

    def _on_assigned(self, task_id: str) -> None:
        self._assigned_at[task_id] = time.monotonic()
        task = self.state.task(task_id)
        if self.state.ai_settings.enabled and task is not None and task.assignee_id:
            queue_ai_work(self.state, task.id, task.assignee_id)

    def assign(self, task_id: str, employee_id: str) -> bool:
        with self._lock:
            self._require_task(task_id)
            self._require_employee(employee_id)
            assigned = assign_task(self.state, task_id, employee_id)
            if assigned:
                self._on_assigned(task_id)
            return assigned

    def unassign(self, task_id: str) -> bool:
        with self._lock:
            self._require_task(task_id)
            self._assigned_at.pop(task_id, None)
            return unassign_task(self.state, task_id)

    def update_task_status(self, task_id: str, status: str) -> bool:
        with self._lock:
            self._require_task(task_id)
            updated = update_task_status(self.state, task_id, status)
            started = self._assigned_at.pop(task_id, None) if updated and status == "done" else None
            if started is not None and time.monotonic() - started < SPEED_DEMON_SECONDS:
                unlock_achievement(self.state, "speed-demon")
            return updated

    def set_task_priority(self, task_id: str, priority: str) -> bool:
        with self._lock:
            self._require_task(task_id)
            return set_task_priority(self.state, task_id, priority)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def list_queue(self) -> list[QueuedTaskItem]:
        with self._lock:
            return list(self.state.task_queue.items)

    def enqueue(self, **fields: Any) -> QueuedTaskItem:
        with self._lock:
            return enqueue(self.state, **fields)

    def remove_from_queue(self, item_id: str) -> None:
        with self._lock:
            self._require_queue_item(item_id)
            remove_from_queue(self.state, item_id)

    def reorder_queue(self, item_id: str, position: int) -> list[QueuedTaskItem]:
        with self._lock:
            self._require_queue_item(item_id)
            reorder_queue(self.state, item_id, position)
            return list(self.state.task_queue.items)

    def clear_queue(self) -> int:
        with self._lock:
            return clear_queue(self.state)

    def auto_assign_enabled(self) -> bool:
        with self._lock:
            return self.state.task_queue.auto_assign_enabled

    def toggle_auto_assign(self) -> bool:
        with self._lock:
            return toggle_auto_assign(self.state)

    def process_queue(self) -> list[QueuedTaskItem]:
        with self._lock:
            assigned = process_queue(self.state)
            for item in assigned:
                if item.assigned_task_id:
                    self._on_assigned(item.assigned_task_id)
            return assigned

    def _fetch_issues(self, gateway: IssueGateway | None, tracker: str, source: str | None, limit: int) -> list[dict]:
        if gateway is None:
            raise RuntimeError(f"{tracker} import is not configured")
        if not source:
            raise ValueError(f"A {tracker} source is required when no issues are supplied")
        try:
            return gateway.fetch_issues(source, limit)
        except httpx.HTTPError as exc:
            raise RuntimeError(f"{tracker} request failed: {exc}") from exc

    def import_github(
        self,
        repo: str | None = None,
        issues: Sequence[dict] | None = None,
        auto_assign: bool = True,
        limit: int = 50,
    ) -> list[QueuedTaskItem]:
        if issues is None:
            issues = self._fetch_issues(self.github_gateway, "GitHub", repo, limit)
        with self._lock:
            return import_github_issues(self.state, issues, repo, auto_assign)

    def import_linear(
        self,
        team_id: str | None = None,
        issues: Sequence[dict] | None = None,
        auto_assign: bool = True,
        limit: int = 50,
    ) -> list[QueuedTaskItem]:
        if issues is None:
            issues = self._fetch_issues(self.linear_gateway, "Linear", team_id, limit)
        with self._lock:
            return import_linear_issues(self.state, issues, auto_assign)

    # ------------------------------------------------------------------
    # Missions + epics
    # ------------------------------------------------------------------

    def list_missions(self) -> list[Mission]:
        with self._lock:
            return list(self.state.missions)

    def get_mission(self, mission_id: str) -> Mission:
        with self._lock:
            return self._require_mission(mission_id)

    def create_mission(
        self,
        name: str,
        description: str = "",
        priority: str = "medium",
        tasks: Iterable[dict] | None = None,
    ) -> Mission:
        with self._lock:
            if tasks:
                return create_mission_with_tasks(self.state, name, description, priority, tasks)
            return create_mission(self.state, name, description, priority)

    def start_mission(self, mission_id: str) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            return start_mission(self.state, mission_id)

    def abandon_mission(self, mission_id: str) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            return abandon_mission(self.state, mission_id)

    def complete_mission(self, mission_id: str) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            return complete_mission(self.state, mission_id)

    def set_mission_pr(self, mission_id: str, url: str, number: int) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            return set_mission_pr(self.state, mission_id, url, number)

    def add_mission_commit(self, mission_id: str, message: str, files: Iterable[str] = (), task_id: str | None = None) -> MissionCommit | None:
        with self._lock:
            self._require_mission(mission_id)
            return add_mission_commit(self.state, mission_id, message, files, task_id)

    def add_task_to_mission(self, mission_id: str, task_id: str) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            self._require_task(task_id)
            return add_task_to_mission(self.state, mission_id, task_id)

    def remove_task_from_mission(self, mission_id: str, task_id: str) -> bool:
        with self._lock:
            self._require_mission(mission_id)
            return remove_task_from_mission(self.state, mission_id, task_id)

    def list_epics(self) -> list[Epic]:
        with self._lock:
            return list(self.state.pm_brain.epics)

    def create_epic(self, name: str, description: str = "", priority: str = "medium", phase: str = "mvp") -> Epic:
        with self._lock:
            return create_epic(self.state, name, description, priority, phase)

    def add_mission_to_epic(self, epic_id: str, mission_id: str) -> bool:
        with self._lock:
            self._require_epic(epic_id)
            self._require_mission(mission_id)
            return add_mission_to_epic(self.state, epic_id, mission_id)

    def update_epic_status(self, epic_id: str, status: str) -> bool:
        with self._lock:
            self._require_epic(epic_id)
            return update_epic_status(self.state, epic_id, status)

    # ------------------------------------------------------------------
    # PM brain
    # ------------------------------------------------------------------

    def pm_brain(self) -> PMBrainState:
        with self._lock:
            return copy.deepcopy(self.state.pm_brain)

    def list_proposals(self, pending_only: bool = True) -> list[PMProposal]:
        with self._lock:
            proposals = get_pending_proposals(self.state) if pending_only else self.state.pm_brain.proposals
            return copy.deepcopy(proposals)

    def get_proposal(self, proposal_id: str) -> PMProposal:
        with self._lock:
            proposal = self.state.proposal(proposal_id)
            if proposal is None:
                raise KeyError(f"Proposal {proposal_id} not found")
            return copy.deepcopy(proposal)

    def toggle_pm_brain(self) -> bool:
        with self._lock:
            return toggle_pm_brain(self.state)

    def run_pm_evaluation(self, force: bool = True, max_missions: int = 3) -> bool:
        with self._lock:
            return run_pm_evaluation(self.state, force=force, max_missions=max_missions)

    def approve_proposal(self, proposal_id: str) -> bool:
        with self._lock:
            self._require_proposal(proposal_id)
            return approve_proposal(self.state, proposal_id, self._random)

    def reject_proposal(self, proposal_id: str) -> bool:
        with self._lock:
            self._require_proposal(proposal_id)
            return reject_proposal(self.state, proposal_id)

    def dismiss_proposal(self, proposal_id: str) -> bool:
        with self._lock:
            self._require_proposal(proposal_id)
            return dismiss_proposal(self.state, proposal_id)

    # ------------------------------------------------------------------
    # Achievements, events, upgrades, autopilot
    # ------------------------------------------------------------------

    def list_achievements(self) -> list[Achievement]:
        with self._lock:
            return copy.deepcopy(self.state.achievements)

    def check_achievements(self) -> list[str]:
        with self._lock:
            return check_achievements(self.state, self._clock())

    def find_easter_egg(self) -> bool:
        with self._lock:
            return unlock_achievement(self.state, "easter-egg")

    def event_catalogue(self) -> list[dict[str, Any]]:
        return [
            {
                "id": event.id,
                "name": event.name,
                "description": event.description,
                "category": event.category,
                "probability": event.probability,
                "requirements": [req.describe() for req in event.requirements],
                "effects": [vars(effect) for effect in event.effects],
                "choices": [
                    {
                        "id": choice.id,
                        "label": choice.label,
                        "description": choice.description,
                        "cost": choice.cost,
                        "effects": [vars(effect) for effect in choice.effects],
                    }
                    for choice in event.choices
                ],
            }
            for event in DEFAULT_EVENTS
        ]

    def list_active_events(self) -> list[ActiveEvent]:
        with self._lock:
            return copy.deepcopy(self.state.active_events)

    def trigger_event(self, event_id: str | None = None) -> Any:
        if event_id is not None and event_id not in EVENTS_BY_ID:
            raise KeyError(f"Event {event_id} not found")
        with self._lock:
            return trigger_event(self.state, self._random, event_id)

    def make_event_choice(self, event_id: str, choice_id: str) -> bool:
        if event_id not in EVENTS_BY_ID:
            raise KeyError(f"Event {event_id} not found")
        with self._lock:
            return make_event_choice(self.state, event_id, choice_id, self._random)

    def list_upgrades(self) -> list[Upgrade]:
        with self._lock:
            return copy.deepcopy(self.state.upgrades)

    def get_upgrade(self, upgrade_id: str) -> Upgrade:
        with self._lock:
            upgrade = self.state.upgrade(upgrade_id)
            if upgrade is None:
                raise KeyError(f"Upgrade {upgrade_id} not found")
            return copy.deepcopy(upgrade)

    def purchase_upgrade(self, upgrade_id: str) -> bool:
        with self._lock:
            if self.state.upgrade(upgrade_id) is None:
                raise KeyError(f"Upgrade {upgrade_id} not found")
            return purchase_upgrade(self.state, upgrade_id)

    def set_autopilot(self, enabled: bool) -> bool:
        with self._lock:
            self.state.autopilot = enabled
            return enabled

    def run_autopilot(self) -> list[str]:
        with self._lock:
            return run_autopilot(self.state, self._random)

    # ------------------------------------------------------------------
    # AI work
    # ------------------------------------------------------------------

    def ai_settings(self) -> AISettings:
        with self._lock:
            return copy.copy(self.state.ai_settings)

    def update_ai_settings(
        self,
        enabled: bool | None = None,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
    ) -> None:
        with self._lock:
            settings = self.state.ai_settings
            if enabled is not None:
                settings.enabled = enabled
            if provider:
                settings.provider = provider
            if model:
                settings.model = model
            if api_key is not None:
                settings.api_key = api_key or None
                if isinstance(self.generator, GPTWorkGenerator):
                    self.generator.api_key = settings.api_key

    def set_employee_ai(self, employee_id: str, provider: str | None, model: str | None) -> Employee:
        with self._lock:
            employee = self._require_employee(employee_id)
            set_employee_ai(self.state, employee_id, provider, model)
            return employee

    def queue_ai_work(self, task_id: str) -> AIWorkItem:
        with self._lock:
            task = self._require_task(task_id)
            item = queue_ai_work(self.state, task_id, task.assignee_id or "")
            if item is None:
                raise RuntimeError(f"Task {task_id} is not in progress with an assignee")
            return item

    def list_ai_work(self) -> list[AIWorkItem]:
        with self._lock:
            return list(self.state.ai_work_queue)

    def process_ai_work(self) -> tuple[Task | None, str | None]:
        with self._lock:
            return process_ai_work(self.state, self.generator)

    def retry_ai_work(self, task_id: str) -> bool:
        with self._lock:
            return retry_ai_work(self.state, task_id)

    # ------------------------------------------------------------------
    # Persistence + diagnostics
    # ------------------------------------------------------------------

    def save(self, slot: str) -> dict[str, Any]:
        with self._lock:
            return snapshots.save_game(slot, self.state)

    def load(self, slot: str) -> GameStateRead:
        self.stop_auto_ticks()
        loaded = snapshots.load_game(slot)
        if loaded is None:
            raise KeyError(f"Save slot {slot} not found")
        with self._lock:
            loaded.speed = "paused"
            loaded.ai_settings.api_key = self.state.ai_settings.api_key
            self.state = loaded
            self._assigned_at.clear()
        logger.info("Loaded save %s at tick %s", slot, loaded.tick)
        return self.get_state()

    def list_saves(self) -> list[dict[str, Any]]:
        return snapshots.list_saves()

    def delete_save(self, slot: str) -> bool:
        return snapshots.delete_save(slot)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return snapshots.snapshot(self.state)

    def check_invariants(self) -> list[str]:
        with self._lock:
            return check_invariants(self.state)

    def close(self) -> None:
        self.stop_auto_ticks()
        for gateway in (self.github_gateway, self.linear_gateway):
            close = getattr(gateway, "close", None)
            if callable(close):
                close()
