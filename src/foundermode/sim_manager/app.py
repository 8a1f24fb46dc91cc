from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status

from .engine import SimulationEngine
from .gateways import GitHubIssueGateway, LinearIssueGateway
from .models import AgentMemory
from .schemas import (
    AchievementRead,
    ActiveEventRead,
    ActivityRead,
    AdvanceRequest,
    AdvanceResult,
    AISettingsRead,
    AISettingsUpdate,
    AIWorkItemRead,
    AIWorkResult,
    AssignRequest,
    ControlResponse,
    EmployeeAIUpdate,
    EmployeeContextRead,
    EmployeeRead,
    EpicCreate,
    EpicMissionLink,
    EpicRead,
    EpicStatusUpdate,
    EventChoiceRequest,
    EventDefinitionRead,
    EventTriggerRequest,
    GameStateRead,
    HireRequest,
    MemoryCreate,
    MissionCommitCreate,
    MissionCommitRead,
    MissionCreate,
    MissionPRRequest,
    MissionRead,
    MissionTaskLink,
    PMBrainRead,
    PMEvaluationRequest,
    ProjectStartRequest,
    ProposalRead,
    QueueItemCreate,
    QueueItemRead,
    QueueRead,
    QueueReorderRequest,
    SaveRead,
    SaveRequest,
    SpeedRequest,
    TaskCreate,
    TaskPriorityUpdate,
    TaskRead,
    TaskStatusUpdate,
    TrackerImportRequest,
    UpgradeRead,
)

API_PREFIX = "/api/v1"


def _build_default_engine() -> SimulationEngine:
    try:
        tick_interval_seconds = float(os.getenv("FOUNDER_TICK_INTERVAL_SECONDS", "1.0"))
    except ValueError:
        tick_interval_seconds = 1.0
    github_base = os.getenv("FOUNDER_GITHUB_API_URL", "https://api.github.com")
    linear_base = os.getenv("FOUNDER_LINEAR_API_URL", "https://api.linear.app")
    return SimulationEngine(
        github_gateway=GitHubIssueGateway(base_url=github_base, token=os.getenv("GITHUB_TOKEN")),
        linear_gateway=LinearIssueGateway(base_url=linear_base, api_key=os.getenv("LINEAR_API_KEY")),
        tick_interval_seconds=tick_interval_seconds,
    )


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0] if exc.args else "Not found")


def _rejected(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def create_app(engine: SimulationEngine | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine_obj = getattr(app.state, "engine", None)
        if engine_obj is not None:
            engine_obj.close()

    app = FastAPI(title="Founder Mode Simulation", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine or _build_default_engine()

    def get_engine(request: Request) -> SimulationEngine:
        return request.app.state.engine

    # ------------------------------------------------------------------
    # Game + clock
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/game", response_model=GameStateRead)
    def get_game(engine: SimulationEngine = Depends(get_engine)) -> GameStateRead:
        return engine.get_state()

    @app.post(f"{API_PREFIX}/game/project", response_model=GameStateRead, status_code=status.HTTP_201_CREATED)
    def start_project(payload: ProjectStartRequest, engine: SimulationEngine = Depends(get_engine)) -> GameStateRead:
        try:
            return engine.start_project(payload.name, payload.idea)
        except RuntimeError as exc:
            raise _rejected(str(exc)) from exc

    @app.post(f"{API_PREFIX}/game/reset", response_model=GameStateRead)
    def reset_game(engine: SimulationEngine = Depends(get_engine)) -> GameStateRead:
        return engine.reset()

    @app.post(f"{API_PREFIX}/game/speed", response_model=ControlResponse)
    def set_speed(payload: SpeedRequest, engine: SimulationEngine = Depends(get_engine)) -> ControlResponse:
        state = engine.set_speed(payload.speed)
        return ControlResponse(tick=state.tick, speed=state.speed, auto_tick=state.auto_tick, message=f"Speed set to {payload.speed}")

    @app.post(f"{API_PREFIX}/game/ticks/start", response_model=ControlResponse)
    def start_ticks(engine: SimulationEngine = Depends(get_engine)) -> ControlResponse:
        try:
            state = engine.start_auto_ticks()
        except RuntimeError as exc:
            raise _rejected(str(exc)) from exc
        return ControlResponse(tick=state.tick, speed=state.speed, auto_tick=state.auto_tick, message="Automatic ticking enabled")

    @app.post(f"{API_PREFIX}/game/ticks/stop", response_model=ControlResponse)
    def stop_ticks(engine: SimulationEngine = Depends(get_engine)) -> ControlResponse:
        state = engine.stop_auto_ticks()
        return ControlResponse(tick=state.tick, speed=state.speed, auto_tick=state.auto_tick, message="Automatic ticking disabled")

    @app.post(f"{API_PREFIX}/game/tick", response_model=AdvanceResult | None)
    def tick(engine: SimulationEngine = Depends(get_engine)) -> AdvanceResult | None:
        return engine.tick()

    @app.post(f"{API_PREFIX}/game/advance", response_model=AdvanceResult)
    def advance(payload: AdvanceRequest, engine: SimulationEngine = Depends(get_engine)) -> AdvanceResult:
        try:
            return engine.advance(payload.ticks, payload.reason)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    @app.get(f"{API_PREFIX}/game/activity", response_model=list[ActivityRead])
    def get_activity(
        limit: int = Query(default=50, ge=1, le=100),
        engine: SimulationEngine = Depends(get_engine),
    ) -> list[Any]:
        return engine.activity(limit)

    @app.get(f"{API_PREFIX}/game/invariants")
    def get_invariants(engine: SimulationEngine = Depends(get_engine)) -> dict[str, Any]:
        problems = engine.check_invariants()
        return {"ok": not problems, "problems": problems}

    @app.get(f"{API_PREFIX}/game/snapshot")
    def get_snapshot(engine: SimulationEngine = Depends(get_engine)) -> dict[str, Any]:
        return engine.snapshot()

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/employees", response_model=list[EmployeeRead])
    def list_employees(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_employees()

    @app.post(f"{API_PREFIX}/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
    def hire(payload: HireRequest, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.hire(payload.role, payload.skill_level, payload.name)
        except RuntimeError as exc:
            raise _rejected(str(exc)) from exc

    @app.get(f"{API_PREFIX}/employees/{{employee_id}}", response_model=EmployeeRead)
    def get_employee(employee_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.get_employee(employee_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.delete(f"{API_PREFIX}/employees/{{employee_id}}", status_code=status.HTTP_204_NO_CONTENT)
    def fire(employee_id: str, engine: SimulationEngine = Depends(get_engine)) -> None:
        try:
            engine.fire(employee_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/employees/morale-boost")
    def boost_morale(engine: SimulationEngine = Depends(get_engine)) -> dict[str, Any]:
        if not engine.boost_morale():
            raise _rejected("Not enough money for a morale boost")
        return {"boosted": True}

    @app.post(f"{API_PREFIX}/employees/{{employee_id}}/memories", response_model=EmployeeRead)
    def add_memory(employee_id: str, payload: MemoryCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        memory = AgentMemory(type=payload.type, content=payload.content, importance=payload.importance, tags=list(payload.tags))
        try:
            return engine.add_memory(employee_id, memory)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.get(f"{API_PREFIX}/employees/{{employee_id}}/context", response_model=EmployeeContextRead)
    def employee_context(
        employee_id: str,
        task_id: str | None = Query(default=None),
        engine: SimulationEngine = Depends(get_engine),
    ) -> EmployeeContextRead:
        try:
            context = engine.employee_context(employee_id, task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc
        return EmployeeContextRead(employee_id=employee_id, context=context)

    @app.put(f"{API_PREFIX}/employees/{{employee_id}}/ai", response_model=EmployeeRead)
    def set_employee_ai(employee_id: str, payload: EmployeeAIUpdate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.set_employee_ai(employee_id, payload.provider, payload.model)
        except KeyError as exc:
            raise _not_found(exc) from exc

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/tasks", response_model=list[TaskRead])
    def list_tasks(
        status_filter: str | None = Query(default=None, alias="status"),
        engine: SimulationEngine = Depends(get_engine),
    ) -> list[Any]:
        return engine.list_tasks(status_filter)

    @app.post(f"{API_PREFIX}/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
    def create_task(payload: TaskCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.create_task(**payload.model_dump())
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.get(f"{API_PREFIX}/tasks/{{task_id}}", response_model=TaskRead)
    def get_task(task_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.get_task(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/tasks/{{task_id}}/assign", response_model=TaskRead)
    def assign(task_id: str, payload: AssignRequest, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.assign(task_id, payload.employee_id):
                raise _rejected("Task or employee is not available")
            return engine.get_task(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/tasks/{{task_id}}/unassign", response_model=TaskRead)
    def unassign(task_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.unassign(task_id):
                raise _rejected("Task is not assigned")
            return engine.get_task(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.put(f"{API_PREFIX}/tasks/{{task_id}}/status", response_model=TaskRead)
    def update_task_status(task_id: str, payload: TaskStatusUpdate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.update_task_status(task_id, payload.status):
                raise _rejected(f"Cannot move task to {payload.status}")
            return engine.get_task(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.put(f"{API_PREFIX}/tasks/{{task_id}}/priority", response_model=TaskRead)
    def set_task_priority(task_id: str, payload: TaskPriorityUpdate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            engine.set_task_priority(task_id, payload.priority)
            return engine.get_task(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/queue", response_model=QueueRead)
    def get_queue(engine: SimulationEngine = Depends(get_engine)) -> QueueRead:
        items = engine.list_queue()
        return QueueRead(auto_assign_enabled=engine.auto_assign_enabled(), items=[vars(i) for i in items])

    @app.post(f"{API_PREFIX}/queue", response_model=QueueItemRead, status_code=status.HTTP_201_CREATED)
    def enqueue(payload: QueueItemCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return engine.enqueue(**payload.model_dump())

    @app.delete(f"{API_PREFIX}/queue/{{item_id}}", status_code=status.HTTP_204_NO_CONTENT)
    def remove_from_queue(item_id: str, engine: SimulationEngine = Depends(get_engine)) -> None:
        try:
            engine.remove_from_queue(item_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.put(f"{API_PREFIX}/queue/{{item_id}}/position", response_model=list[QueueItemRead])
    def reorder_queue(item_id: str, payload: QueueReorderRequest, engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        try:
            return engine.reorder_queue(item_id, payload.position)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/queue/clear")
    def clear_queue(engine: SimulationEngine = Depends(get_engine)) -> dict[str, int]:
        return {"removed": engine.clear_queue()}

    @app.post(f"{API_PREFIX}/queue/auto-assign")
    def toggle_auto_assign(engine: SimulationEngine = Depends(get_engine)) -> dict[str, bool]:
        return {"auto_assign_enabled": engine.toggle_auto_assign()}

    @app.post(f"{API_PREFIX}/queue/process", response_model=list[QueueItemRead])
    def process_queue(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.process_queue()

    @app.post(f"{API_PREFIX}/queue/import/github", response_model=list[QueueItemRead])
    def import_github(payload: TrackerImportRequest, engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        try:
            return engine.import_github(payload.source, payload.issues, payload.auto_assign, payload.limit)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    @app.post(f"{API_PREFIX}/queue/import/linear", response_model=list[QueueItemRead])
    def import_linear(payload: TrackerImportRequest, engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        try:
            return engine.import_linear(payload.source, payload.issues, payload.auto_assign, payload.limit)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    # ------------------------------------------------------------------
    # Missions + epics
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/missions", response_model=list[MissionRead])
    def list_missions(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_missions()

    @app.post(f"{API_PREFIX}/missions", response_model=MissionRead, status_code=status.HTTP_201_CREATED)
    def create_mission(payload: MissionCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        tasks = [task.model_dump() for task in payload.tasks] if payload.tasks else None
        return engine.create_mission(payload.name, payload.description, payload.priority, tasks)

    @app.get(f"{API_PREFIX}/missions/{{mission_id}}", response_model=MissionRead)
    def get_mission(mission_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.get_mission(mission_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    def _mission_transition(mission_id: str, engine: SimulationEngine, action: str) -> Any:
        try:
            changed = getattr(engine, f"{action}_mission")(mission_id)
            if not changed:
                raise _rejected(f"Cannot {action} mission in its current status")
            return engine.get_mission(mission_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/missions/{{mission_id}}/start", response_model=MissionRead)
    def start_mission(mission_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return _mission_transition(mission_id, engine, "start")

    @app.post(f"{API_PREFIX}/missions/{{mission_id}}/abandon", response_model=MissionRead)
    def abandon_mission(mission_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return _mission_transition(mission_id, engine, "abandon")

    @app.post(f"{API_PREFIX}/missions/{{mission_id}}/complete", response_model=MissionRead)
    def complete_mission(mission_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return _mission_transition(mission_id, engine, "complete")

    @app.post(f"{API_PREFIX}/missions/{{mission_id}}/pull-request", response_model=MissionRead)
    def set_mission_pr(mission_id: str, payload: MissionPRRequest, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.set_mission_pr(mission_id, payload.url, payload.number):
                raise _rejected("Only an active mission can open a pull request")
            return engine.get_mission(mission_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(
        f"{API_PREFIX}/missions/{{mission_id}}/commits",
        response_model=MissionCommitRead,
        status_code=status.HTTP_201_CREATED,
    )
    def add_mission_commit(mission_id: str, payload: MissionCommitCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            commit = engine.add_mission_commit(mission_id, payload.message, payload.files, payload.task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc
        if commit is None:
            raise _rejected("Mission is closed")
        return commit

    @app.post(f"{API_PREFIX}/missions/{{mission_id}}/tasks", response_model=MissionRead)
    def add_task_to_mission(mission_id: str, payload: MissionTaskLink, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.add_task_to_mission(mission_id, payload.task_id):
                raise _rejected("Task cannot be added to this mission")
            return engine.get_mission(mission_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.delete(f"{API_PREFIX}/missions/{{mission_id}}/tasks/{{task_id}}", response_model=MissionRead)
    def remove_task_from_mission(mission_id: str, task_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.remove_task_from_mission(mission_id, task_id):
                raise _rejected("Task cannot be removed from this mission")
            return engine.get_mission(mission_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.get(f"{API_PREFIX}/epics", response_model=list[EpicRead])
    def list_epics(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_epics()

    @app.post(f"{API_PREFIX}/epics", response_model=EpicRead, status_code=status.HTTP_201_CREATED)
    def create_epic(payload: EpicCreate, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return engine.create_epic(payload.name, payload.description, payload.priority, payload.phase)

    @app.post(f"{API_PREFIX}/epics/{{epic_id}}/missions", response_model=list[EpicRead])
    def add_mission_to_epic(epic_id: str, payload: EpicMissionLink, engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        try:
            if not engine.add_mission_to_epic(epic_id, payload.mission_id):
                raise _rejected("Mission is already part of this epic")
        except KeyError as exc:
            raise _not_found(exc) from exc
        return engine.list_epics()

    @app.put(f"{API_PREFIX}/epics/{{epic_id}}/status", response_model=list[EpicRead])
    def update_epic_status(epic_id: str, payload: EpicStatusUpdate, engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        try:
            engine.update_epic_status(epic_id, payload.status)
        except KeyError as exc:
            raise _not_found(exc) from exc
        return engine.list_epics()

    # ------------------------------------------------------------------
    # PM brain
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/pm", response_model=PMBrainRead)
    def get_pm_brain(engine: SimulationEngine = Depends(get_engine)) -> Any:
        return engine.pm_brain()

    @app.post(f"{API_PREFIX}/pm/toggle")
    def toggle_pm_brain(engine: SimulationEngine = Depends(get_engine)) -> dict[str, bool]:
        return {"enabled": engine.toggle_pm_brain()}

    @app.post(f"{API_PREFIX}/pm/evaluate", response_model=PMBrainRead)
    def run_pm_evaluation(
        payload: PMEvaluationRequest | None = None,
        engine: SimulationEngine = Depends(get_engine),
    ) -> Any:
        payload = payload or PMEvaluationRequest()
        engine.run_pm_evaluation(force=payload.force, max_missions=payload.max_missions)
        return engine.pm_brain()

    @app.get(f"{API_PREFIX}/pm/proposals", response_model=list[ProposalRead])
    def list_proposals(
        pending_only: bool = Query(default=True),
        engine: SimulationEngine = Depends(get_engine),
    ) -> list[Any]:
        return engine.list_proposals(pending_only)

    def _resolve_proposal(proposal_id: str, engine: SimulationEngine, action: str) -> Any:
        try:
            if not getattr(engine, f"{action}_proposal")(proposal_id):
                raise _rejected(f"Proposal cannot be {action}d")
        except KeyError as exc:
            raise _not_found(exc) from exc
        return engine.get_proposal(proposal_id)

    @app.post(f"{API_PREFIX}/pm/proposals/{{proposal_id}}/approve", response_model=ProposalRead)
    def approve_proposal(proposal_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return _resolve_proposal(proposal_id, engine, "approve")

    @app.post(f"{API_PREFIX}/pm/proposals/{{proposal_id}}/reject", response_model=ProposalRead)
    def reject_proposal(proposal_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        return _resolve_proposal(proposal_id, engine, "reject")

    @app.delete(f"{API_PREFIX}/pm/proposals/{{proposal_id}}", status_code=status.HTTP_204_NO_CONTENT)
    def dismiss_proposal(proposal_id: str, engine: SimulationEngine = Depends(get_engine)) -> None:
        try:
            engine.dismiss_proposal(proposal_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    # ------------------------------------------------------------------
    # Achievements, events, upgrades, autopilot
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/achievements", response_model=list[AchievementRead])
    def list_achievements(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_achievements()

    @app.post(f"{API_PREFIX}/achievements/check")
    def check_achievements(engine: SimulationEngine = Depends(get_engine)) -> dict[str, list[str]]:
        return {"unlocked": engine.check_achievements()}

    @app.post(f"{API_PREFIX}/achievements/easter-egg")
    def find_easter_egg(engine: SimulationEngine = Depends(get_engine)) -> dict[str, bool]:
        return {"unlocked": engine.find_easter_egg()}

    @app.get(f"{API_PREFIX}/events", response_model=list[EventDefinitionRead])
    def event_catalogue(engine: SimulationEngine = Depends(get_engine)) -> list[dict[str, Any]]:
        return engine.event_catalogue()

    @app.get(f"{API_PREFIX}/events/active", response_model=list[ActiveEventRead])
    def active_events(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_active_events()

    @app.post(f"{API_PREFIX}/events/trigger", response_model=ActiveEventRead | None)
    def trigger_event(payload: EventTriggerRequest | None = None, engine: SimulationEngine = Depends(get_engine)) -> Any:
        event_id = payload.event_id if payload else None
        try:
            return engine.trigger_event(event_id)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.post(f"{API_PREFIX}/events/{{event_id}}/choice")
    def make_event_choice(event_id: str, payload: EventChoiceRequest, engine: SimulationEngine = Depends(get_engine)) -> dict[str, Any]:
        try:
            if not engine.make_event_choice(event_id, payload.choice_id):
                raise _rejected("Choice is not available or not affordable")
        except KeyError as exc:
            raise _not_found(exc) from exc
        return {"event_id": event_id, "choice_id": payload.choice_id, "resolved": True}

    @app.get(f"{API_PREFIX}/upgrades", response_model=list[UpgradeRead])
    def list_upgrades(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_upgrades()

    @app.post(f"{API_PREFIX}/upgrades/{{upgrade_id}}/purchase", response_model=UpgradeRead)
    def purchase_upgrade(upgrade_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            if not engine.purchase_upgrade(upgrade_id):
                raise _rejected("Upgrade is locked, owned or unaffordable")
        except KeyError as exc:
            raise _not_found(exc) from exc
        return engine.get_upgrade(upgrade_id)

    @app.put(f"{API_PREFIX}/autopilot")
    def set_autopilot(enabled: bool = Query(...), engine: SimulationEngine = Depends(get_engine)) -> dict[str, bool]:
        return {"autopilot": engine.set_autopilot(enabled)}

    @app.post(f"{API_PREFIX}/autopilot/run")
    def run_autopilot(engine: SimulationEngine = Depends(get_engine)) -> dict[str, list[str]]:
        return {"actions": engine.run_autopilot()}

    # ------------------------------------------------------------------
    # AI work
    # ------------------------------------------------------------------

    def _ai_settings_read(engine: SimulationEngine) -> AISettingsRead:
        settings = engine.ai_settings()
        return AISettingsRead(
            enabled=settings.enabled,
            provider=settings.provider,
            model=settings.model,
            has_api_key=bool(settings.api_key),
        )

    @app.get(f"{API_PREFIX}/ai/settings", response_model=AISettingsRead)
    def get_ai_settings(engine: SimulationEngine = Depends(get_engine)) -> AISettingsRead:
        return _ai_settings_read(engine)

    @app.put(f"{API_PREFIX}/ai/settings", response_model=AISettingsRead)
    def update_ai_settings(payload: AISettingsUpdate, engine: SimulationEngine = Depends(get_engine)) -> AISettingsRead:
        engine.update_ai_settings(payload.enabled, payload.provider, payload.model, payload.api_key)
        return _ai_settings_read(engine)

    @app.get(f"{API_PREFIX}/ai/work", response_model=list[AIWorkItemRead])
    def list_ai_work(engine: SimulationEngine = Depends(get_engine)) -> list[Any]:
        return engine.list_ai_work()

    @app.post(f"{API_PREFIX}/ai/work/process", response_model=AIWorkResult)
    def process_ai_work(engine: SimulationEngine = Depends(get_engine)) -> AIWorkResult:
        task, error = engine.process_ai_work()
        if task is None:
            return AIWorkResult(status="idle")
        return AIWorkResult(task_id=task.id, status="failed" if error else "completed", error=error)

    @app.post(f"{API_PREFIX}/ai/work/{{task_id}}", response_model=AIWorkItemRead, status_code=status.HTTP_201_CREATED)
    def queue_ai_work(task_id: str, engine: SimulationEngine = Depends(get_engine)) -> Any:
        try:
            return engine.queue_ai_work(task_id)
        except KeyError as exc:
            raise _not_found(exc) from exc
        except RuntimeError as exc:
            raise _rejected(str(exc)) from exc

    @app.post(f"{API_PREFIX}/ai/work/{{task_id}}/retry")
    def retry_ai_work(task_id: str, engine: SimulationEngine = Depends(get_engine)) -> dict[str, bool]:
        if not engine.retry_ai_work(task_id):
            raise _rejected("No failed work item for this task")
        return {"requeued": True}

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    @app.get(f"{API_PREFIX}/saves", response_model=list[SaveRead])
    def list_saves(engine: SimulationEngine = Depends(get_engine)) -> list[dict[str, Any]]:
        return engine.list_saves()

    @app.post(f"{API_PREFIX}/saves", response_model=SaveRead, status_code=status.HTTP_201_CREATED)
    def save_game(payload: SaveRequest, engine: SimulationEngine = Depends(get_engine)) -> dict[str, Any]:
        return engine.save(payload.slot)

    @app.post(f"{API_PREFIX}/saves/{{slot}}/load", response_model=GameStateRead)
    def load_game(slot: str, engine: SimulationEngine = Depends(get_engine)) -> GameStateRead:
        try:
            return engine.load(slot)
        except KeyError as exc:
            raise _not_found(exc) from exc

    @app.delete(f"{API_PREFIX}/saves/{{slot}}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_save(slot: str, engine: SimulationEngine = Depends(get_engine)) -> None:
        if not engine.delete_save(slot):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Save slot {slot} not found")

    return app


def _bootstrap_default_app() -> FastAPI:
    try:
        return create_app()
    except Exception as exc:  # pragma: no cover - bootstrap fallback
        fallback = FastAPI(title="Founder Mode Simulation", version="0.1.0")

        @fallback.get("/bootstrap-status")
        def bootstrap_status() -> dict[str, Any]:
            return {"status": "degraded", "detail": str(exc)}

        return fallback


app = _bootstrap_default_app()
