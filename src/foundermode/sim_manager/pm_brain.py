"""PM Brain: product-state inference, thoughts, mission templates and the proposal workflow.

The PM Brain never mutates the product directly. It looks at finished work, writes
diagnostic thoughts, and files proposals that a human approves or rejects. Approving
a mission proposal is the only path from PM output to new missions and tasks.
"""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from .assignment import set_task_priority
from .missions import create_mission_with_tasks
from .models import (
    PRIORITY_ORDER,
    THOUGHT_LIMIT,
    Employee,
    GameState,
    Mission,
    PMProposal,
    PMThought,
    ProductState,
    Task,
)
from .team import hire_employee
from .upgrades import purchase_upgrade

logger = logging.getLogger(__name__)

PROPOSAL_TTL_TICKS = 960
TECH_DEBT_WARNING = 60
STALE_TASK_AGE = 1000
MAX_TEAM_SIZE = 10

# capability flag -> patterns searched in done task titles and mission names
CAPABILITY_RULES: dict[str, tuple[str, ...]] = {
    "has_auth": ("auth", "login", "signup", "session", "password"),
    "has_database": ("database", "schema", "model", "migration", "postgres", "mongo"),
    "has_api": ("api", "endpoint", "route", "rest", "graphql"),
    "has_ui": ("component", "page", "screen", "dashboard", "interface", "ui"),
    "has_landing": ("landing", "hero", "marketing", "homepage"),
    "has_pricing": ("pricing", "payment", "stripe", "billing", "subscription"),
    "has_onboarding": ("onboard", "tutorial", "wizard", "guide", "welcome"),
    "has_analytics": ("analytics", "tracking", "metrics", "dashboard", "chart"),
    "has_testing": ("test", "spec", "jest", "cypress", "coverage"),
    "has_ci": ("ci", "deploy", "pipeline", "github action", "vercel"),
    "has_documentation": ("readme", "doc", "guide", "api doc"),
}
_CAPABILITY_PATTERNS = {
    flag: re.compile("|".join(re.escape(p) for p in patterns)) for flag, patterns in CAPABILITY_RULES.items()
}

CORE_CAPABILITIES = ("has_auth", "has_database", "has_api", "has_ui")
GROWTH_CAPABILITIES = ("has_landing", "has_pricing", "has_onboarding", "has_analytics")


def detect_capabilities(corpus: str) -> dict[str, bool]:
    text = corpus.lower()
    return {flag: bool(pattern.search(text)) for flag, pattern in _CAPABILITY_PATTERNS.items()}


def classify_phase(capabilities: dict[str, bool]) -> str:
    core = sum(1 for flag in CORE_CAPABILITIES if capabilities.get(flag))
    growth = sum(1 for flag in GROWTH_CAPABILITIES if capabilities.get(flag))
    if core >= 3 and growth >= 2:
        return "scale"
    if core >= 2 and growth >= 1:
        return "growth"
    return "mvp"


def analyze_product_state(tasks: Sequence[Task], missions: Sequence[Mission], tick: int) -> ProductState:
    completed = [t for t in tasks if t.status == "done"]
    corpus = " ".join(t.title.lower() for t in completed) + " " + " ".join(m.name.lower() for m in missions)
    capabilities = detect_capabilities(corpus)

    feature_count = sum(1 for t in completed if t.type == "feature")
    bug_count = sum(1 for t in tasks if t.type == "bug" and t.status != "done")
    avg_age = sum(tick - t.created_at for t in completed) / len(completed) if completed else 0
    tech_debt = (
        (0 if capabilities["has_testing"] else 30)
        + (0 if capabilities["has_ci"] else 20)
        + bug_count * 5
        + (20 if avg_age > STALE_TASK_AGE else 0)
    )
    return ProductState(
        phase=classify_phase(capabilities),
        feature_count=feature_count,
        bug_count=bug_count,
        tech_debt_score=min(100, max(0, tech_debt)),
        user_feedback_score=50,
        **capabilities,
    )


def generate_pm_thoughts(
    product_state: ProductState,
    missions: Sequence[Mission],
    tasks: Sequence[Task],
    employees: Sequence[Employee],
    tick: int = 0,
) -> list[PMThought]:
    thoughts: list[PMThought] = []

    def think(type_: str, message: str) -> None:
        thoughts.append(PMThought(type=type_, message=message, timestamp=tick))

    think(
        "observation",
        f"Product is in {product_state.phase.upper()} phase with {product_state.feature_count} features shipped.",
    )
    missing = [
        label
        for flag, label in (
            ("has_database", "database"),
            ("has_auth", "authentication"),
            ("has_api", "API"),
            ("has_ui", "UI components"),
        )
        if not getattr(product_state, flag)
    ]
    if missing:
        think("observation", f"Missing core features: {', '.join(missing)}")

    idle = sum(1 for e in employees if e.status == "idle")
    working = sum(1 for e in employees if e.status == "working")
    think("observation", f"Team: {working} working, {idle} idle out of {len(employees)} total.")

    pending = sum(1 for t in tasks if t.status in ("todo", "backlog"))
    if idle > 0 and pending == 0:
        think("priority", f"{idle} idle employees with no pending tasks. Need to generate more work.")
    if not any(m.status == "active" for m in missions):
        think("priority", "No active missions. Should start a new feature initiative.")
    if product_state.tech_debt_score > TECH_DEBT_WARNING:
        think(
            "priority",
            f"Tech debt is high ({product_state.tech_debt_score}/100). Consider adding tests and documentation.",
        )
    if product_state.bug_count > 0:
        think("priority", f"{product_state.bug_count} open bugs need attention.")
    return thoughts


# ------------------------------------------------------------------
# Mission templates

@dataclass(frozen=True)
class TemplateTask:
    title: str
    type: str
    estimated_ticks: int


@dataclass(frozen=True)
class MissionTemplate:
    name: str
    description: str
    priority: str
    phases: frozenset[str]
    condition: Callable[[ProductState], bool]
    tasks: tuple[TemplateTask, ...]


def _needs_database(s: ProductState) -> bool:
    return not s.has_database


def _needs_auth(s: ProductState) -> bool:
    return s.has_database and not s.has_auth


def _needs_api(s: ProductState) -> bool:
    return not s.has_api


def _needs_ui(s: ProductState) -> bool:
    return not s.has_ui


def _needs_landing(s: ProductState) -> bool:
    return s.phase != "mvp" and not s.has_landing


def _needs_onboarding(s: ProductState) -> bool:
    return s.has_auth and not s.has_onboarding


def _needs_analytics(s: ProductState) -> bool:
    return not s.has_analytics


def _needs_payments(s: ProductState) -> bool:
    return s.phase == "scale" and not s.has_pricing


def _needs_testing(s: ProductState) -> bool:
    return s.tech_debt_score > 50 and not s.has_testing


def _needs_ci(s: ProductState) -> bool:
    return s.has_testing and not s.has_ci


def _has_bug_backlog(s: ProductState) -> bool:
    return s.bug_count >= 3


def _needs_docs(s: ProductState) -> bool:
    return s.feature_count >= 5 and not s.has_documentation


def _tasks(*rows: tuple[str, str, int]) -> tuple[TemplateTask, ...]:
    return tuple(TemplateTask(title, type_, ticks) for title, type_, ticks in rows)


ALL_PHASES = frozenset({"mvp", "growth", "scale", "mature"})

MISSION_TEMPLATES: tuple[MissionTemplate, ...] = (
    MissionTemplate(
        "Core Database Setup",
        "Set up the database schema and models for the application",
        "critical",
        frozenset({"mvp"}),
        _needs_database,
        _tasks(
            ("Design database schema", "infrastructure", 300),
            ("Create database models", "feature", 400),
            ("Set up migrations", "infrastructure", 200),
            ("Add seed data", "infrastructure", 150),
        ),
    ),
    MissionTemplate(
        "User Authentication",
        "Implement secure user authentication with login, signup, and session management",
        "critical",
        frozenset({"mvp"}),
        _needs_auth,
        _tasks(
            ("Create user model", "feature", 200),
            ("Build signup flow", "feature", 350),
            ("Build login flow", "feature", 300),
            ("Implement session management", "feature", 250),
            ("Add password reset", "feature", 300),
            ("Design auth UI", "design", 200),
        ),
    ),
    MissionTemplate(
        "API Foundation",
        "Create the core API structure with routes and middleware",
        "high",
        frozenset({"mvp"}),
        _needs_api,
        _tasks(
            ("Set up API router", "infrastructure", 200),
            ("Add authentication middleware", "feature", 250),
            ("Create error handling", "feature", 150),
            ("Add request validation", "feature", 200),
            ("Set up CORS", "infrastructure", 100),
        ),
    ),
    MissionTemplate(
        "Core UI Components",
        "Build the foundational UI component library",
        "high",
        frozenset({"mvp"}),
        _needs_ui,
        _tasks(
            ("Create design system tokens", "design", 200),
            ("Build Button component", "feature", 150),
            ("Build Input component", "feature", 150),
            ("Build Card component", "feature", 150),
            ("Build Modal component", "feature", 200),
            ("Build Navigation component", "feature", 250),
            ("Add dark mode support", "design", 200),
        ),
    ),
    MissionTemplate(
        "Marketing Landing Page",
        "Create a compelling landing page to attract users",
        "high",
        frozenset({"growth"}),
        _needs_landing,
        _tasks(
            ("Design landing page layout", "design", 300),
            ("Build hero section", "feature", 250),
            ("Create features showcase", "feature", 300),
            ("Add testimonials section", "feature", 200),
            ("Write landing page copy", "marketing", 250),
            ("Add CTA buttons", "feature", 100),
            ("Implement responsive design", "design", 200),
            ("Add animations", "design", 200),
        ),
    ),
    MissionTemplate(
        "User Onboarding",
        "Guide new users through the product with an onboarding flow",
        "medium",
        frozenset({"growth"}),
        _needs_onboarding,
        _tasks(
            ("Design onboarding flow", "design", 250),
            ("Build welcome screen", "feature", 200),
            ("Create product tour", "feature", 350),
            ("Add tooltips system", "feature", 200),
            ("Track onboarding completion", "feature", 150),
        ),
    ),
    MissionTemplate(
        "Analytics Dashboard",
        "Build analytics to understand user behavior",
        "medium",
        frozenset({"growth", "scale"}),
        _needs_analytics,
        _tasks(
            ("Set up analytics tracking", "infrastructure", 250),
            ("Create events schema", "infrastructure", 150),
            ("Build analytics dashboard", "feature", 400),
            ("Add charts and graphs", "feature", 350),
            ("Create metrics API", "feature", 250),
        ),
    ),
    MissionTemplate(
        "Payment Integration",
        "Add payment processing and subscription management",
        "critical",
        frozenset({"scale"}),
        _needs_payments,
        _tasks(
            ("Integrate Stripe", "feature", 400),
            ("Create pricing page", "feature", 300),
            ("Build checkout flow", "feature", 350),
            ("Add subscription management", "feature", 300),
            ("Handle webhooks", "feature", 250),
            ("Create billing portal", "feature", 250),
        ),
    ),
    MissionTemplate(
        "Testing Suite",
        "Add comprehensive testing to ensure quality",
        "high",
        frozenset({"growth", "scale"}),
        _needs_testing,
        _tasks(
            ("Set up testing framework", "infrastructure", 200),
            ("Write unit tests for core logic", "infrastructure", 400),
            ("Add integration tests", "infrastructure", 350),
            ("Set up E2E tests", "infrastructure", 300),
            ("Add test coverage reporting", "infrastructure", 150),
        ),
    ),
    MissionTemplate(
        "CI/CD Pipeline",
        "Automate testing and deployment",
        "medium",
        frozenset({"growth", "scale"}),
        _needs_ci,
        _tasks(
            ("Set up GitHub Actions", "infrastructure", 250),
            ("Configure automated testing", "infrastructure", 200),
            ("Add deployment pipeline", "infrastructure", 300),
            ("Set up staging environment", "infrastructure", 250),
            ("Add deployment notifications", "infrastructure", 100),
        ),
    ),
    MissionTemplate(
        "Bug Fixes Sprint",
        "Address accumulated bugs and issues",
        "high",
        ALL_PHASES,
        _has_bug_backlog,
        _tasks(
            ("Triage and prioritize bugs", "bug", 100),
            ("Fix critical bugs", "bug", 400),
            ("Fix medium priority bugs", "bug", 300),
            ("Update error handling", "bug", 200),
        ),
    ),
    MissionTemplate(
        "Documentation",
        "Create comprehensive documentation",
        "low",
        frozenset({"growth", "scale", "mature"}),
        _needs_docs,
        _tasks(
            ("Write README", "infrastructure", 150),
            ("Create API documentation", "infrastructure", 300),
            ("Add code comments", "infrastructure", 200),
            ("Create user guide", "marketing", 250),
        ),
    ),
)


def evaluate_next_missions(
    product_state: ProductState,
    existing_missions: Sequence[Mission],
    max_suggestions: int = 3,
) -> list[MissionTemplate]:
    existing = {m.name.lower() for m in existing_missions}
    eligible = [
        template
        for template in MISSION_TEMPLATES
        if product_state.phase in template.phases
        and template.condition(product_state)
        and template.name.lower() not in existing
    ]
    # sorted() is stable, so catalogue order breaks ties
    eligible = sorted(eligible, key=lambda t: PRIORITY_ORDER[t.priority])
    return eligible[:max_suggestions]


# ------------------------------------------------------------------
# Proposals

def add_pm_thought(state: GameState, type_: str, message: str) -> PMThought:
    thought = PMThought(type=type_, message=message, timestamp=state.tick)
    state.pm_brain.thoughts.append(thought)
    del state.pm_brain.thoughts[:-THOUGHT_LIMIT]
    return thought


def toggle_pm_brain(state: GameState) -> bool:
    state.pm_brain.enabled = not state.pm_brain.enabled
    return state.pm_brain.enabled


def create_proposal(
    state: GameState,
    type_: str,
    title: str,
    description: str,
    reasoning: str,
    priority: str,
    payload: dict,
) -> PMProposal:
    proposal = PMProposal(
        id=state.next_id("proposal"),
        type=type_,
        title=title,
        description=description,
        reasoning=reasoning,
        priority=priority,
        created_at=state.tick,
        expires_at=state.tick + PROPOSAL_TTL_TICKS,
        payload=payload,
    )
    state.pm_brain.proposals.append(proposal)
    return proposal


def mission_proposal_from_template(state: GameState, template: MissionTemplate, product_state: ProductState) -> PMProposal:
    return create_proposal(
        state,
        "mission",
        f"Start mission: {template.name}",
        template.description,
        f"Product is in {product_state.phase.upper()} phase and this capability is missing.",
        template.priority,
        {
            "mission_name": template.name,
            "mission_description": template.description,
            "tasks": [
                {"title": t.title, "type": t.type, "estimated_ticks": t.estimated_ticks} for t in template.tasks
            ],
        },
    )


def _hiring_needs(state: GameState) -> list[tuple[str, str, str]]:
    """Return (role, priority, reasoning) tuples for roles the team is short of."""
    employees = state.employees
    roles = {e.role for e in employees}
    pending = [t for t in state.tasks if t.status in ("todo", "backlog")]
    queued = sum(1 for i in state.task_queue.items if i.status == "queued")
    needs: list[tuple[str, str, str]] = []
    if "engineer" not in roles:
        needs.append(("engineer", "high", "Nobody on the team can write code yet."))
    elif len(pending) + queued > 2 * len(employees) and len(employees) < MAX_TEAM_SIZE:
        needs.append(("engineer", "medium", f"{len(pending) + queued} open work items for {len(employees)} people."))
    if "designer" not in roles and any(t.type == "design" for t in pending):
        needs.append(("designer", "medium", "Design work is waiting and there is no designer."))
    return needs


def run_pm_evaluation(state: GameState, *, force: bool = False, max_missions: int = 3) -> bool:
    brain = state.pm_brain
    if not brain.enabled or state.project is None:
        return False
    if (
        not force
        and brain.last_evaluation is not None
        and state.tick - brain.last_evaluation < brain.evaluation_interval
    ):
        return False

    for proposal in brain.proposals:
        if proposal.status == "pending" and proposal.expires_at is not None and proposal.expires_at <= state.tick:
            proposal.status = "expired"

    product_state = analyze_product_state(state.tasks, state.missions, state.tick)
    brain.product_state = product_state
    brain.thoughts = generate_pm_thoughts(product_state, state.missions, state.tasks, state.employees, state.tick)
    brain.last_evaluation = state.tick

    live = [p for p in brain.proposals if p.status not in ("rejected", "expired")]
    proposed_missions = {str(p.payload.get("mission_name", "")).lower() for p in live if p.type == "mission"}
    created = 0
    for template in evaluate_next_missions(product_state, state.missions, max_missions):
        if template.name.lower() in proposed_missions:
            continue
        mission_proposal_from_template(state, template, product_state)
        created += 1

    pending_hires = {p.payload.get("role") for p in brain.proposals if p.type == "hire" and p.status == "pending"}
    for role, priority, reasoning in _hiring_needs(state):
        if role in pending_hires:
            continue
        create_proposal(
            state,
            "hire",
            f"Hire a {role}",
            f"Bring on a mid-level {role}.",
            reasoning,
            priority,
            {"role": role, "skill_level": "mid"},
        )
        pending_hires.add(role)
        created += 1

    if created:
        add_pm_thought(state, "decision", f"Filed {created} new proposal(s) for review.")
    logger.info("PM evaluation at tick %s: phase=%s, %s new proposal(s)", state.tick, product_state.phase, created)
    return True


def get_pending_proposals(state: GameState) -> list[PMProposal]:
    return [p for p in state.pm_brain.proposals if p.status == "pending"]


def approve_proposal(state: GameState, proposal_id: str, rng: random.Random | None = None) -> bool:
    proposal = state.proposal(proposal_id)
    if proposal is None or proposal.status != "pending":
        return False
    payload = proposal.payload
    if proposal.type == "mission":
        name = payload.get("mission_name") or proposal.title
        mission = create_mission_with_tasks(
            state,
            name,
            payload.get("mission_description") or proposal.description,
            proposal.priority,
            payload.get("tasks") or [],
        )
        add_pm_thought(state, "action", f"Approved mission \"{mission.name}\" with {len(mission.task_ids)} tasks.")
    elif proposal.type == "hire":
        hired = hire_employee(state, payload.get("role", "engineer"), payload.get("skill_level", "mid"), rng or random.Random())
        if hired is None:
            logger.info("Hire proposal %s approved but the hire could not be made", proposal_id)
            return False
    elif proposal.type == "priority":
        set_task_priority(state, payload.get("task_id", ""), payload.get("suggested_priority", "medium"))
    elif proposal.type == "tech":
        purchase_upgrade(state, payload.get("upgrade_id", ""))
    proposal.status = "approved"
    state.log(f"Approved proposal: {proposal.title}", "project")
    logger.info("Approved %s proposal %s", proposal.type, proposal.id)
    return True


def reject_proposal(state: GameState, proposal_id: str) -> bool:
    proposal = state.proposal(proposal_id)
    if proposal is None or proposal.status != "pending":
        return False
    proposal.status = "rejected"
    return True


def dismiss_proposal(state: GameState, proposal_id: str) -> bool:
    proposal = state.proposal(proposal_id)
    if proposal is None:
        return False
    state.pm_brain.proposals.remove(proposal)
    return True
