from foundermode.sim_manager.models import Employee, GameState, check_invariants
from foundermode.sim_manager.task_queue import (
    clear_queue,
    enqueue,
    import_github_issues,
    import_linear_issues,
    normalize_github_issue,
    normalize_linear_issue,
    process_queue,
    remove_from_queue,
    reorder_queue,
    toggle_auto_assign,
)


def _employee(state, role):
    employee = Employee(
        id=state.next_id("emp"),
        name=f"{role.title()} One",
        role=role,
        skill_level="mid",
        salary=7000,
        productivity=70,
        morale=80,
    )
    state.employees.append(employee)
    return employee


def test_github_labels_map_to_type_and_priority():
    issue = {
        "number": 12,
        "title": "Checkout crashes",
        "body": "Stack trace attached",
        "html_url": "https://github.com/acme/shop/issues/12",
        "labels": [{"name": "Bug"}, {"name": "urgent"}],
    }
    fields = normalize_github_issue(issue, "acme/shop")
    assert fields["type"] == "bug"
    assert fields["priority"] == "critical"
    assert fields["labels"] == ["bug", "urgent"]
    assert fields["external_id"] == "github-12"
    assert fields["source_url"] == "https://github.com/acme/shop/issues/12"

    plain = normalize_github_issue({"number": 3, "title": "Tidy up", "labels": ["infra", "low"]})
    assert plain["type"] == "infrastructure"
    assert plain["priority"] == "low"
    assert plain["description"] == ""


def test_linear_priority_mapping():
    expected = {0: "medium", 1: "critical", 2: "high", 3: "medium", 4: "low", None: "medium"}
    for raw, priority in expected.items():
        fields = normalize_linear_issue(
            {"id": f"uuid-{raw}", "identifier": "ENG-4", "title": "Rate limits", "priority": raw}
        )
        assert fields["priority"] == priority

    fields = normalize_linear_issue(
        {
            "id": "abc",
            "identifier": "ENG-9",
            "title": "New onboarding illustrations",
            "priority": 2,
            "labels": {"nodes": [{"name": "Design"}]},
        }
    )
    assert fields["title"] == "ENG-9: New onboarding illustrations"
    assert fields["type"] == "design"
    assert fields["external_id"] == "linear-abc"
    assert fields["source"] == "linear"


def test_imports_skip_pull_requests_and_duplicates():
    state = GameState()
    issues = [
        {"number": 1, "title": "First"},
        {"number": 2, "title": "A PR", "pull_request": {"url": "https://api.github.com/pulls/2"}},
    ]
    added = import_github_issues(state, issues, "acme/shop")
    assert [item.external_id for item in added] == ["github-1"]
    assert import_github_issues(state, issues, "acme/shop") == []

    linear = import_linear_issues(state, [{"id": "x1", "identifier": "ENG-1", "title": "Webhooks"}], auto_assign=False)
    assert linear[0].auto_assign is False
    assert [item.position for item in state.task_queue.items] == [0, 1]


def test_process_queue_is_bounded_by_idle_employees():
    state = GameState()
    engineer = _employee(state, "engineer")
    designer = _employee(state, "designer")
    enqueue(state, title="Manual only", type="feature", auto_assign=False)
    enqueue(state, title="Landing hero", type="design")
    enqueue(state, title="REST endpoints", type="feature")
    enqueue(state, title="Fix crash", type="bug")

    assigned = process_queue(state)

    assert len(assigned) == 2
    assert [item.title for item in assigned] == ["Landing hero", "REST endpoints"]
    assert state.task(assigned[0].assigned_task_id).assignee_id == designer.id
    assert state.task(assigned[1].assigned_task_id).assignee_id == engineer.id
    assert state.task(assigned[1].assigned_task_id).estimated_ticks == 80
    statuses = [item.status for item in state.task_queue.items]
    assert statuses == ["queued", "assigned", "assigned", "queued"]
    assert check_invariants(state) == []

    # nobody idle: nothing changes
    assert process_queue(state) == []


def test_process_queue_falls_back_to_any_idle_employee():
    state = GameState()
    marketer = _employee(state, "marketer")
    enqueue(state, title="Migrate database", type="infrastructure", priority="critical")

    assigned = process_queue(state)
    task = state.task(assigned[0].assigned_task_id)
    assert task.assignee_id == marketer.id
    assert task.estimated_ticks == 40


def test_auto_assign_toggle_stops_processing():
    state = GameState()
    _employee(state, "engineer")
    enqueue(state, title="Search")
    assert toggle_auto_assign(state) is False
    assert process_queue(state) == []
    assert toggle_auto_assign(state) is True
    assert len(process_queue(state)) == 1


def test_reorder_remove_and_clear():
    state = GameState()
    first = enqueue(state, title="One")
    second = enqueue(state, title="Two")
    third = enqueue(state, title="Three")

    assert reorder_queue(state, third.id, 0)
    assert [item.id for item in state.task_queue.items] == [third.id, first.id, second.id]
    assert [item.position for item in state.task_queue.items] == [0, 1, 2]

    assert reorder_queue(state, first.id, 99)
    assert state.task_queue.items[-1].id == first.id

    assert remove_from_queue(state, second.id)
    assert not remove_from_queue(state, second.id)

    third.status = "assigned"
    assert clear_queue(state) == 1
    assert [item.id for item in state.task_queue.items] == [third.id]
    assert third.position == 0
