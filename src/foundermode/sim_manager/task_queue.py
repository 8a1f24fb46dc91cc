"""Task intake queue: normalisation of external work items and auto-assignment."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .assignment import assign_task, create_task
from .models import PRIORITIES, TASK_TYPES, GameState, QueuedTaskItem

logger = logging.getLogger(__name__)

ROLE_FOR_TYPE: dict[str, str] = {
    "feature": "engineer",
    "bug": "engineer",
    "infrastructure": "engineer",
    "design": "designer",
    "marketing": "marketer",
}

ESTIMATED_TICKS_BY_PRIORITY: dict[str, int] = {
    "critical": 40,
    "high": 60,
    "medium": 80,
    "low": 100,
}

# First matching label wins; order matters.
_TYPE_LABELS: tuple[tuple[str, frozenset[str]], ...] = (
    ("bug", frozenset({"bug"})),
    ("design", frozenset({"design"})),
    ("marketing", frozenset({"marketing"})),
    ("infrastructure", frozenset({"infrastructure", "infra"})),
)
_PRIORITY_LABELS: tuple[tuple[str, frozenset[str]], ...] = (
    ("critical", frozenset({"critical", "urgent"})),
    ("high", frozenset({"high", "priority"})),
    ("low", frozenset({"low"})),
)
_LINEAR_PRIORITIES: dict[int, str] = {1: "critical", 2: "high", 4: "low"}


def _label_names(raw_labels: Iterable[Any] | None) -> list[str]:
    names: list[str] = []
    for label in raw_labels or ():
        if isinstance(label, Mapping):
            name = label.get("name")
        else:
            name = label
        if name:
            names.append(str(name).strip().lower())
    return names


def infer_type(labels: Iterable[str]) -> str:
    names = set(labels)
    for task_type, keys in _TYPE_LABELS:
        if names & keys:
            return task_type
    return "feature"


def infer_priority(labels: Iterable[str]) -> str:
    names = set(labels)
    for priority, keys in _PRIORITY_LABELS:
        if names & keys:
            return priority
    return "medium"


def preferred_role(item: QueuedTaskItem) -> str:
    if item.preferred_role:
        return item.preferred_role
    return ROLE_FOR_TYPE.get(item.type, "engineer")


def normalize_github_issue(issue: Mapping[str, Any], repo: str | None = None) -> dict[str, Any]:
    labels = _label_names(issue.get("labels"))
    number = issue.get("number", issue.get("id"))
    url = issue.get("html_url")
    if not url and repo:
        url = f"https://github.com/{repo}/issues/{number}"
    return {
        "title": issue.get("title") or f"Issue #{number}",
        "description": issue.get("body") or "",
        "type": infer_type(labels),
        "priority": infer_priority(labels),
        "labels": labels,
        "source": "github",
        "external_id": f"github-{number}",
        "source_url": url,
    }


def normalize_linear_issue(issue: Mapping[str, Any]) -> dict[str, Any]:
    raw_labels = issue.get("labels")
    if isinstance(raw_labels, Mapping):
        raw_labels = raw_labels.get("nodes")
    labels = _label_names(raw_labels)
    identifier = issue.get("identifier") or issue.get("id")
    try:
        priority = _LINEAR_PRIORITIES.get(int(issue.get("priority") or 0), "medium")
    except (TypeError, ValueError):
        priority = "medium"
    return {
        "title": f"{identifier}: {issue.get('title', '')}",
        "description": issue.get("description") or issue.get("body") or "",
        "type": infer_type(labels),
        "priority": priority,
        "labels": labels,
        "source": "linear",
        "external_id": f"linear-{issue.get('id')}",
        "source_url": issue.get("url") or f"https://linear.app/issue/{identifier}",
    }


def _reindex(state: GameState) -> None:
    for index, item in enumerate(state.task_queue.items):
        item.position = index


def enqueue(
    state: GameState,
    *,
    title: str,
    description: str = "",
    type: str = "feature",
    priority: str = "medium",
    source: str = "manual",
    labels: Iterable[str] = (),
    auto_assign: bool = True,
    preferred_role: str | None = None,
    external_id: str | None = None,
    source_url: str | None = None,
) -> QueuedTaskItem:
    item = QueuedTaskItem(
        id=state.next_id("queue"),
        title=title,
        description=description,
        type=type if type in TASK_TYPES else "feature",
        priority=priority if priority in PRIORITIES else "medium",
        source=source,
        labels=list(labels),
        auto_assign=auto_assign,
        preferred_role=preferred_role,
        position=len(state.task_queue.items),
        external_id=external_id,
        source_url=source_url,
        created_at=state.tick,
    )
    state.task_queue.items.append(item)
    return item


def _import(state: GameState, normalized: Iterable[dict[str, Any]], auto_assign: bool) -> list[QueuedTaskItem]:
    known = {item.external_id for item in state.task_queue.items if item.external_id}
    added: list[QueuedTaskItem] = []
    for fields in normalized:
        if fields["external_id"] in known:
            continue
        added.append(enqueue(state, auto_assign=auto_assign, **fields))
        known.add(fields["external_id"])
    if added:
        state.log(f"Imported {len(added)} item(s) into the task queue", "task")
    return added


def import_github_issues(
    state: GameState,
    issues: Iterable[Mapping[str, Any]],
    repo: str | None = None,
    auto_assign: bool = True,
) -> list[QueuedTaskItem]:
    # pull requests come back from the issues endpoint too
    plain = (issue for issue in issues if "pull_request" not in issue)
    return _import(state, (normalize_github_issue(issue, repo) for issue in plain), auto_assign)


def import_linear_issues(
    state: GameState,
    issues: Iterable[Mapping[str, Any]],
    auto_assign: bool = True,
) -> list[QueuedTaskItem]:
    return _import(state, (normalize_linear_issue(issue) for issue in issues), auto_assign)


def remove_from_queue(state: GameState, item_id: str) -> bool:
    items = state.task_queue.items
    for index, item in enumerate(items):
        if item.id == item_id:
            del items[index]
            _reindex(state)
            return True
    return False


def reorder_queue(state: GameState, item_id: str, new_position: int) -> bool:
    items = state.task_queue.items
    item = next((i for i in items if i.id == item_id), None)
    if item is None:
        return False
    items.remove(item)
    new_position = max(0, min(new_position, len(items)))
    items.insert(new_position, item)
    _reindex(state)
    return True


def clear_queue(state: GameState) -> int:
    before = len(state.task_queue.items)
    state.task_queue.items = [item for item in state.task_queue.items if item.status == "assigned"]
    _reindex(state)
    return before - len(state.task_queue.items)


def toggle_auto_assign(state: GameState) -> bool:
    state.task_queue.auto_assign_enabled = not state.task_queue.auto_assign_enabled
    return state.task_queue.auto_assign_enabled


def process_queue(state: GameState) -> list[QueuedTaskItem]:
    """Match queued items to idle employees by role; unmatched items wait for a later tick."""
    if not state.task_queue.auto_assign_enabled:
        return []
    idle = [e for e in state.employees if e.status == "idle" and e.current_task_id is None]
    assigned: list[QueuedTaskItem] = []
    for item in state.task_queue.items:
        if not idle:
            break
        if item.status != "queued" or not item.auto_assign:
            continue
        role = preferred_role(item)
        employee = next((e for e in idle if e.role == role), None) or idle[0]
        task = create_task(
            state,
            title=item.title,
            description=item.description,
            type=item.type,
            priority=item.priority,
            status="todo",
            estimated_ticks=ESTIMATED_TICKS_BY_PRIORITY[item.priority],
        )
        if not assign_task(state, task.id, employee.id):
            continue
        idle.remove(employee)
        item.status = "assigned"
        item.assigned_task_id = task.id
        assigned.append(item)
        logger.debug("Queue item %s -> task %s for %s", item.id, task.id, employee.id)
    return assigned
