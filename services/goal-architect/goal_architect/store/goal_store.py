"""Single owner of the active goal plan and its goal-health metric.

Every mutation builds the next plan, persists the whole snapshot, then
swaps it in, so a failure at any point leaves the previous state intact.
While a re-optimization is awaiting the gateway, every other mutation is
rejected with ``PlanBusyError`` instead of racing the merge.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from ..errors import (
    CollaboratorUnavailableError,
    InvalidPlanError,
    NoActivePlanError,
    PlanArchitectError,
    PlanBusyError,
    SchemaViolationError,
)
from ..schemas.goal import GoalPlan, GoalPlanResponse, GoalPlanState, Milestone
from ..utils.dates import to_iso
from .normalize import compute_goal_health, normalize_milestones, normalize_plan, rehydrate_plan
from .persistence import InMemoryPersistence, PersistenceAdapter

logger = logging.getLogger(__name__)

STORAGE_NAME = "goal-architect-store"
SNAPSHOT_VERSION = 0


class PlanGenerator(Protocol):
    async def generate_plan(self, body: Any) -> Any:
        ...


class GoalPlanStore:
    def __init__(
        self,
        gateway: PlanGenerator,
        persistence: Optional[PersistenceAdapter] = None,
        storage_key: str = STORAGE_NAME,
    ) -> None:
        self._gateway = gateway
        self._persistence = persistence if persistence is not None else InMemoryPersistence()
        self._storage_key = storage_key
        self._plan: Optional[GoalPlan] = None
        self._goal_health = 0
        self._reoptimize_lock = asyncio.Lock()

    @property
    def plan(self) -> Optional[GoalPlan]:
        return self._plan.model_copy(deep=True) if self._plan is not None else None

    @property
    def goal_health(self) -> int:
        return self._goal_health

    @property
    def is_reoptimizing(self) -> bool:
        return self._reoptimize_lock.locked()

    def state(self) -> GoalPlanState:
        return GoalPlanState(plan=self.plan, goalHealth=self._goal_health)

    def _ensure_idle(self, operation: str) -> None:
        if self._reoptimize_lock.locked():
            logger.warning("Rejected %s while a re-optimization is in flight", operation)
            raise PlanBusyError(f"Cannot {operation} while the plan is being re-optimized.")

    def _snapshot(self, plan: Optional[GoalPlan]) -> str:
        record = {
            "state": {"plan": plan.model_dump(mode="json") if plan is not None else None},
            "version": SNAPSHOT_VERSION,
        }
        return json.dumps(record)

    def _commit(self, plan: Optional[GoalPlan]) -> None:
        self._persistence.set_item(self._storage_key, self._snapshot(plan))
        self._plan = plan
        self._goal_health = compute_goal_health(plan.milestones) if plan is not None else 0

    def set_goal_plan(self, plan: Any) -> GoalPlan:
        self._ensure_idle("apply a new plan")
        normalized = normalize_plan(plan)
        self._commit(normalized)
        logger.info("Applied plan %r with %d milestones", normalized.goalTitle, len(normalized.milestones))
        return normalized.model_copy(deep=True)

    def update_progress(self, milestone_id: str) -> None:
        self._ensure_idle("update progress")
        plan = self._plan
        if plan is None:
            return
        if not any(milestone.id == milestone_id for milestone in plan.milestones):
            logger.info("Ignoring toggle for unknown milestone %r", milestone_id)
            return

        updated = [
            milestone.model_copy(update={"status": "pending" if milestone.status == "completed" else "completed"})
            if milestone.id == milestone_id
            else milestone
            for milestone in plan.milestones
        ]
        self._commit(plan.model_copy(update={"milestones": updated}))
        logger.info("Toggled milestone %r, goal health now %d", milestone_id, self._goal_health)

    def _merge_returned(self, completed: List[Milestone], response: Any) -> List[Milestone]:
        if isinstance(response, GoalPlanResponse):
            returned = response.milestones
        elif isinstance(response, Mapping):
            returned = response.get("milestones")
        else:
            returned = None
        if not isinstance(returned, list):
            raise SchemaViolationError(
                "Re-optimized plan failed schema validation.",
                [{"field": "milestones", "message": "Input should be a valid list"}],
            )

        try:
            fresh = normalize_milestones(returned)
        except InvalidPlanError as error:
            raise SchemaViolationError("Re-optimized plan failed schema validation.", error.issues) from error

        completed_ids = {milestone.id for milestone in completed}
        issues: List[Dict[str, str]] = []
        for index, milestone in enumerate(fresh):
            if milestone.id in completed_ids:
                issues.append(
                    {"field": f"milestones/{index}/id", "message": f"Milestone id {milestone.id!r} is already used by a completed milestone"}
                )
        if issues:
            logger.warning("Re-optimized milestones collide with completed ones: %s", issues)
            raise SchemaViolationError("Re-optimized plan failed schema validation.", issues)
        return completed + fresh

    async def re_optimize_remaining_path(self) -> GoalPlan:
        self._ensure_idle("re-optimize")
        if self._plan is None:
            raise NoActivePlanError("No active plan to re-optimize.")

        async with self._reoptimize_lock:
            plan = self._plan
            completed = [milestone for milestone in plan.milestones if milestone.status == "completed"]
            remaining = [milestone for milestone in plan.milestones if milestone.status != "completed"]
            request = {
                "goalTitle": plan.goalTitle,
                "timeframe": {"start": to_iso(plan.timeframe.start), "end": to_iso(plan.timeframe.end)},
                "intensity": plan.intensity,
                "remainingMilestones": [milestone.model_dump(mode="json") for milestone in remaining],
            }
            logger.info("Re-optimizing %d remaining milestones (%d completed kept)", len(remaining), len(completed))

            try:
                response = await self._gateway.generate_plan(request)
            except PlanArchitectError as error:
                logger.error("Re-optimization failed: %s", error.message)
                raise
            except Exception as error:
                logger.exception("Re-optimization failed")
                raise CollaboratorUnavailableError("Failed to re-optimize plan.") from error

            merged = self._merge_returned(completed, response)
            self._commit(plan.model_copy(update={"milestones": merged}))

        logger.info("Re-optimized plan now has %d milestones, goal health %d", len(merged), self._goal_health)
        return self.plan

    def reset_plan(self) -> None:
        self._ensure_idle("reset the plan")
        self._commit(None)
        logger.info("Plan reset")

    def rehydrate(self) -> Optional[GoalPlan]:
        """Load the persisted snapshot, coercing anything unreadable to safe defaults."""
        raw = self._persistence.get_item(self._storage_key)
        plan = None
        if raw:
            try:
                record = json.loads(raw)
            except ValueError:
                logger.warning("Discarding unreadable persisted snapshot under %r", self._storage_key)
                record = None
            state = record.get("state") if isinstance(record, dict) else None
            plan = rehydrate_plan(state.get("plan") if isinstance(state, dict) else None)

        self._plan = plan
        self._goal_health = compute_goal_health(plan.milestones) if plan is not None else 0
        return self.plan
