from functools import lru_cache

from fastapi import APIRouter, Depends, Request

from ..config import settings
from ..errors import InvalidPayloadError, InvalidPlanError
from ..gateway.service import PlanGateway
from ..schemas.goal import GoalPlanResponse, GoalPlanState
from ..store.goal_store import GoalPlanStore
from ..store.persistence import JsonFilePersistence

router = APIRouter(tags=["plans"])


@lru_cache(maxsize=None)
def get_plan_gateway() -> PlanGateway:
    return PlanGateway()


@lru_cache(maxsize=None)
def get_goal_store() -> GoalPlanStore:
    store = GoalPlanStore(
        gateway=get_plan_gateway(),
        persistence=JsonFilePersistence(settings.store_path),
        storage_key=settings.store_key,
    )
    store.rehydrate()
    return store


@router.post("/api/generate-plan", response_model=GoalPlanResponse)
async def generate_plan(request: Request, gateway: PlanGateway = Depends(get_plan_gateway)) -> GoalPlanResponse:
    try:
        body = await request.json()
    except ValueError as error:
        raise InvalidPayloadError("Invalid payload.", [{"field": "$", "message": "Body is not valid JSON"}]) from error
    return await gateway.generate_plan(body)


@router.get("/plan", response_model=GoalPlanState)
async def read_plan(store: GoalPlanStore = Depends(get_goal_store)) -> GoalPlanState:
    return store.state()


@router.put("/plan", response_model=GoalPlanState)
async def apply_plan(request: Request, store: GoalPlanStore = Depends(get_goal_store)) -> GoalPlanState:
    try:
        body = await request.json()
    except ValueError as error:
        raise InvalidPlanError("Plan failed validation.", [{"field": "$", "message": "Body is not valid JSON"}]) from error
    store.set_goal_plan(body)
    return store.state()


@router.post("/plan/milestones/{milestone_id}/toggle", response_model=GoalPlanState)
async def toggle_milestone(milestone_id: str, store: GoalPlanStore = Depends(get_goal_store)) -> GoalPlanState:
    store.update_progress(milestone_id)
    return store.state()


@router.post("/plan/re-optimize", response_model=GoalPlanState)
async def re_optimize(store: GoalPlanStore = Depends(get_goal_store)) -> GoalPlanState:
    await store.re_optimize_remaining_path()
    return store.state()


@router.delete("/plan", response_model=GoalPlanState)
async def reset_plan(store: GoalPlanStore = Depends(get_goal_store)) -> GoalPlanState:
    store.reset_plan()
    return store.state()
