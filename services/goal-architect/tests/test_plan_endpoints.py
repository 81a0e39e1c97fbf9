import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from goal_architect.gateway.service import PlanGateway  # noqa: E402
from goal_architect.main import app  # noqa: E402
from goal_architect.routers.plans import get_goal_store, get_plan_gateway  # noqa: E402
from goal_architect.store.goal_store import GoalPlanStore  # noqa: E402
from goal_architect.store.persistence import InMemoryPersistence  # noqa: E402


@pytest.fixture
def wire(fake_collaborator):
    def build(content: str):
        collaborator = fake_collaborator(content)
        gateway = PlanGateway(collaborator)
        store = GoalPlanStore(gateway, InMemoryPersistence())
        app.dependency_overrides[get_plan_gateway] = lambda: gateway
        app.dependency_overrides[get_goal_store] = lambda: store
        return TestClient(app), collaborator

    yield build
    app.dependency_overrides.clear()


def test_health(wire):
    client, _ = wire("")
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_generate_plan_success(wire, plan_output, plan_request):
    client, _ = wire(f"```json\n{plan_output()}\n```")
    res = client.post("/api/generate-plan", json=plan_request)
    assert res.status_code == 200
    data = res.json()
    assert data["summary"] == "Work backward from the exam."
    assert data["milestones"][0]["id"] == "m1"


def test_generate_plan_invalid_payload(wire, plan_output):
    client, collaborator = wire(plan_output())
    res = client.post("/api/generate-plan", json={"goalTitle": "x", "timeframe": {"start": "a", "end": "b"}, "intensity": "Lazy"})
    assert res.status_code == 400
    assert res.json()["code"] == "invalid_payload"
    assert collaborator.calls == []

    res = client.post("/api/generate-plan", content=b"not json", headers={"content-type": "application/json"})
    assert res.status_code == 400


def test_generate_plan_malformed_output(wire, plan_request):
    client, _ = wire("I am unable to comply.")
    res = client.post("/api/generate-plan", json=plan_request)
    assert res.status_code == 502
    assert res.json()["code"] == "malformed_output"


def test_generate_plan_schema_violation(wire, make_milestone, plan_output, plan_request):
    client, _ = wire(plan_output([make_milestone("m1", category="Sleep")]))
    res = client.post("/api/generate-plan", json=plan_request)
    assert res.status_code == 422
    body = res.json()
    assert body["code"] == "schema_violation"
    assert [issue["field"] for issue in body["issues"]] == ["milestones/0/category"]


def test_plan_lifecycle(wire, make_milestone, make_plan, plan_output):
    client, _ = wire(plan_output([make_milestone("n1"), make_milestone("n2")]))

    res = client.get("/plan")
    assert res.json() == {"plan": None, "goalHealth": 0}

    res = client.put("/plan", json=make_plan())
    assert res.status_code == 200
    assert res.json()["goalHealth"] == 0

    res = client.post("/plan/milestones/m1/toggle")
    assert res.json()["goalHealth"] == 33

    res = client.post("/plan/re-optimize")
    assert res.status_code == 200
    data = res.json()
    assert [m["id"] for m in data["plan"]["milestones"]] == ["m1", "n1", "n2"]
    assert data["goalHealth"] == 33

    res = client.delete("/plan")
    assert res.json() == {"plan": None, "goalHealth": 0}


def test_plan_errors(wire, make_milestone, make_plan):
    client, _ = wire("")
    res = client.post("/plan/re-optimize")
    assert res.status_code == 409
    assert res.json()["code"] == "no_active_plan"

    res = client.put("/plan", json=make_plan([make_milestone("m1", estimatedMinutes=-1)]))
    assert res.status_code == 422
    assert res.json()["code"] == "invalid_plan"

    res = client.post("/plan/milestones/unknown/toggle")
    assert res.status_code == 200


def test_apply_plan_rejects_non_object_bodies(wire):
    client, _ = wire("")
    res = client.put("/plan", json=["not", "a", "plan"])
    assert res.status_code == 422
    assert res.json()["code"] == "invalid_plan"

    res = client.put("/plan", content=b"{broken", headers={"content-type": "application/json"})
    assert res.status_code == 422
    assert res.json()["issues"] == [{"field": "$", "message": "Body is not valid JSON"}]
