from foundermode.sim_manager.models import GameState, Mission, Project, Task
from foundermode.sim_manager.pm_brain import (
    PROPOSAL_TTL_TICKS,
    analyze_product_state,
    approve_proposal,
    classify_phase,
    detect_capabilities,
    dismiss_proposal,
    evaluate_next_missions,
    generate_pm_thoughts,
    get_pending_proposals,
    reject_proposal,
    run_pm_evaluation,
    toggle_pm_brain,
)


def _done(task_id, title, type_="feature", created_at=0):
    return Task(
        id=task_id,
        title=title,
        description="",
        type=type_,
        priority="medium",
        estimated_ticks=10,
        status="done",
        progress_ticks=10,
        created_at=created_at,
    )


def _state_with_project():
    state = GameState()
    state.project = Project(name="Shiplog", idea="Changelogs for SaaS teams")
    return state


def test_phase_classification():
    assert classify_phase({}) == "mvp"
    assert classify_phase({"has_auth": True, "has_database": True, "has_landing": True}) == "growth"
    assert classify_phase(
        {"has_auth": True, "has_database": True, "has_api": True, "has_landing": True, "has_pricing": True}
    ) == "scale"
    # growth needs at least one growth capability
    assert classify_phase({"has_auth": True, "has_database": True, "has_api": True, "has_ui": True}) == "mvp"


def test_product_state_reaches_scale_from_completed_work():
    tasks = [
        _done("t1", "Login flow"),
        _done("t2", "Database schema"),
        _done("t3", "REST endpoint for projects"),
        _done("t4", "Landing hero"),
        _done("t5", "Pricing table"),
    ]
    product = analyze_product_state(tasks, [], tick=100)
    assert product.has_auth and product.has_database and product.has_api
    assert product.has_landing and product.has_pricing
    assert product.phase == "scale"
    assert product.feature_count == 5


def test_capabilities_ignore_unfinished_tasks():
    open_task = _done("t1", "Stripe billing")
    open_task.status = "todo"
    product = analyze_product_state([open_task], [], tick=0)
    assert product.has_pricing is False
    # mission names count even before their tasks are done
    mission = Mission(id="m1", name="Stripe billing", description="", priority="high", branch_name="mission/stripe-billing")
    assert analyze_product_state([open_task], [mission], tick=0).has_pricing is True


def test_tech_debt_score():
    bugs = [_done(f"b{i}", f"Crash {i}", type_="bug") for i in range(3)]
    for bug in bugs:
        bug.status = "todo"
    product = analyze_product_state(bugs, [], tick=0)
    assert product.bug_count == 3
    assert product.tech_debt_score == 30 + 20 + 15

    stale = [_done("old", "Something old", created_at=0)]
    assert analyze_product_state(stale, [], tick=5000).tech_debt_score == 70

    assert detect_capabilities("unit test coverage and deploy pipeline")["has_testing"] is True


def test_thoughts_describe_gaps():
    product = analyze_product_state([], [], tick=0)
    thoughts = generate_pm_thoughts(product, [], [], [], tick=9)
    messages = [t.message for t in thoughts]
    assert messages[0].startswith("Product is in MVP phase")
    assert any("Missing core features: database, authentication, API, UI components" == m for m in messages)
    assert any("No active missions" in m for m in messages)
    assert all(t.timestamp == 9 for t in thoughts)


def test_mission_templates_by_phase_and_priority():
    product = analyze_product_state([], [], tick=0)
    names = [t.name for t in evaluate_next_missions(product, [], 10)]
    assert names == ["Core Database Setup", "API Foundation", "Core UI Components"]

    existing = [Mission(id="m1", name="Core Database Setup", description="", priority="critical", branch_name="x")]
    names = [t.name for t in evaluate_next_missions(product, existing, 10)]
    assert "Core Database Setup" not in names


def test_evaluation_respects_interval_and_enabled_flag():
    state = _state_with_project()
    assert run_pm_evaluation(state)
    state.tick = 50
    assert not run_pm_evaluation(state)
    assert run_pm_evaluation(state, force=True)

    toggle_pm_brain(state)
    assert not run_pm_evaluation(state, force=True)

    assert not run_pm_evaluation(GameState(), force=True)


def test_approval_is_idempotent():
    state = _state_with_project()
    run_pm_evaluation(state, force=True)
    mission_proposal = next(p for p in get_pending_proposals(state) if p.type == "mission")

    assert approve_proposal(state, mission_proposal.id)
    assert len(state.missions) == 1
    task_count = len(state.tasks)
    assert task_count == len(mission_proposal.payload["tasks"])

    assert not approve_proposal(state, mission_proposal.id)
    assert not reject_proposal(state, mission_proposal.id)
    assert len(state.missions) == 1
    assert len(state.tasks) == task_count

    # the approved mission is not proposed again
    state.tick = 500
    run_pm_evaluation(state, force=True)
    names = [p.payload.get("mission_name") for p in state.pm_brain.proposals if p.type == "mission"]
    assert names.count(mission_proposal.payload["mission_name"]) == 1


def test_hire_proposal_and_rejection():
    state = _state_with_project()
    run_pm_evaluation(state, force=True)
    hire = next(p for p in get_pending_proposals(state) if p.type == "hire")
    assert hire.payload == {"role": "engineer", "skill_level": "mid"}

    assert approve_proposal(state, hire.id)
    assert [e.role for e in state.employees] == ["engineer"]

    others = get_pending_proposals(state)
    assert reject_proposal(state, others[0].id)
    assert others[0].status == "rejected"
    assert dismiss_proposal(state, others[0].id)
    assert state.proposal(others[0].id) is None


def test_unaffordable_hire_stays_pending():
    state = _state_with_project()
    run_pm_evaluation(state, force=True)
    hire = next(p for p in get_pending_proposals(state) if p.type == "hire")
    state.money = 100
    assert not approve_proposal(state, hire.id)
    assert hire.status == "pending"


def test_pending_proposals_expire():
    state = _state_with_project()
    run_pm_evaluation(state, force=True)
    first = get_pending_proposals(state)[0]
    state.tick = first.expires_at
    assert first.expires_at == PROPOSAL_TTL_TICKS
    run_pm_evaluation(state, force=True)
    assert first.status == "expired"
