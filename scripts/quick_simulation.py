#!/usr/bin/env python3
"""
Quick Founder Mode run
======================

Drives a running simulation server through a short game:
- starts a project and hires a small team
- imports a couple of issues into the intake queue
- advances the clock, approving PM proposals and reviewed tasks as they appear
- saves the final state and a JSON summary under `simulation_output/`
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

SIM_BASE_URL = os.getenv("FOUNDER_SIM_BASE_URL", "http://127.0.0.1:8015/api/v1")
DAYS = int(os.getenv("FOUNDER_SIM_DAYS", "5"))
TICKS_PER_DAY = 480

OUTPUT_DIR = Path(__file__).parent / "simulation_output"
OUTPUT_DIR.mkdir(exist_ok=True)

SAMPLE_ISSUES = [
    {"number": 1, "title": "Fix crash on signup", "body": "Null email breaks the form.", "labels": [{"name": "bug"}, {"name": "urgent"}]},
    {"number": 2, "title": "Landing page hero", "body": "", "labels": [{"name": "design"}]},
    {"number": 3, "title": "Add REST API for projects", "body": "", "labels": []},
]


def log(message: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] {message}")


def api_call(client: httpx.Client, method: str, path: str, data: dict | None = None) -> Any:
    try:
        response = client.request(method, path, json=data)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        log(f"API Error: {exc} ({method} {path})")
        return {}
    return response.json() if response.content else {}


def save_json(data: Any, filename: str) -> None:
    filepath = OUTPUT_DIR / filename
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    log(f"Saved: {filename}")


def main() -> None:
    with httpx.Client(base_url=SIM_BASE_URL, timeout=30.0) as client:
        api_call(client, "POST", "/game/reset")
        api_call(client, "POST", "/game/project", {"name": "Shiplog", "idea": "A changelog tool for small SaaS teams"})
        for role, skill in (("engineer", "senior"), ("engineer", "mid"), ("designer", "mid"), ("pm", "mid")):
            hired = api_call(client, "POST", "/employees", {"role": role, "skill_level": skill})
            if hired:
                log(f"Hired {hired['name']} ({skill} {role})")
        imported = api_call(client, "POST", "/queue/import/github", {"source": "acme/shiplog", "issues": SAMPLE_ISSUES})
        log(f"Imported {len(imported)} issue(s)")

        for day in range(1, DAYS + 1):
            for _ in range(4):
                result = api_call(client, "POST", "/game/advance", {"ticks": TICKS_PER_DAY // 4, "reason": f"day-{day}"})
                for achievement in result.get("achievements_unlocked", []):
                    log(f"Achievement unlocked: {achievement}")
                for event_id in result.get("events_triggered", []):
                    log(f"Event: {event_id}")
                for task in api_call(client, "GET", "/tasks?status=review") or []:
                    api_call(client, "PUT", f"/tasks/{task['id']}/status", {"status": "done"})
                for proposal in api_call(client, "GET", "/pm/proposals") or []:
                    if proposal["type"] in ("mission", "hire"):
                        api_call(client, "POST", f"/pm/proposals/{proposal['id']}/approve")
                        log(f"Approved proposal: {proposal['title']}")
                for event in api_call(client, "GET", "/events/active") or []:
                    if not event["resolved"]:
                        catalogue = {e["id"]: e for e in api_call(client, "GET", "/events")}
                        choices = catalogue.get(event["event_id"], {}).get("choices", [])
                        if choices:
                            api_call(client, "POST", f"/events/{event['event_id']}/choice", {"choice_id": choices[-1]["id"]})
            state = api_call(client, "GET", "/game")
            log(f"Day {day}: tick={state.get('tick')} money=${state.get('money')} tasks={state.get('task_counts')}")

        invariants = api_call(client, "GET", "/game/invariants")
        if not invariants.get("ok", False):
            log(f"Invariant problems: {invariants.get('problems')}")
        api_call(client, "POST", "/saves", {"slot": "quick-simulation"})
        save_json(
            {
                "state": api_call(client, "GET", "/game"),
                "missions": api_call(client, "GET", "/missions"),
                "achievements": [a for a in api_call(client, "GET", "/achievements") if a["unlocked"]],
                "activity": api_call(client, "GET", "/game/activity?limit=100"),
            },
            "quick_simulation_summary.json",
        )


if __name__ == "__main__":
    main()
