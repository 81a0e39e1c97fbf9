import asyncio
import json
from typing import Any, Dict, List

import pytest


def _milestone(milestone_id: str = "m1", **overrides: Any) -> Dict[str, Any]:
    milestone = {
        "id": milestone_id,
        "title": f"Milestone {milestone_id}",
        "description": "Work through the next chapter.",
        "category": "Study",
        "status": "pending",
        "estimatedMinutes": 90,
        "estimatedHours": 1.5,
        "difficulty": "Medium",
        "deliverable": "Notes",
        "steps": ["Read", "Summarize"],
        "tips": ["Take breaks"],
        "resources": [{"title": "Docs", "url": "https://example.com/docs"}],
    }
    milestone.update(overrides)
    return milestone


def _plan(milestones: List[Dict[str, Any]] = None, **overrides: Any) -> Dict[str, Any]:
    plan = {
        "goalTitle": "Pass the AWS exam",
        "timeframe": {"start": "2026-01-01", "end": "2026-03-01"},
        "intensity": "Standard",
        "milestones": milestones if milestones is not None else [_milestone("m1"), _milestone("m2"), _milestone("m3")],
    }
    plan.update(overrides)
    return plan


class FakeCollaborator:
    def __init__(self, content: str = "", error: Exception = None, delay: float = 0) -> None:
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, str]] = []

    async def complete(self, instructions: str, payload: str) -> str:
        self.calls.append({"instructions": instructions, "payload": payload})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture
def make_milestone():
    return _milestone


@pytest.fixture
def make_plan():
    return _plan


@pytest.fixture
def plan_output():
    def build(milestones: List[Dict[str, Any]] = None, summary: str = "Work backward from the exam.") -> str:
        return json.dumps({"milestones": milestones if milestones is not None else [_milestone("m1")], "summary": summary})

    return build


@pytest.fixture
def plan_request() -> Dict[str, Any]:
    return {
        "goalTitle": "Pass the AWS exam",
        "timeframe": {"start": "2026-01-01", "end": "2026-03-01"},
        "intensity": "Standard",
    }


@pytest.fixture
def fake_collaborator():
    return FakeCollaborator
