"""Plan validation gateway.

Turns a plan request into a schema-valid ``GoalPlanResponse``. The
collaborator's text is treated as untrusted: it is recovered with the
parsing chain, checked against ``plan.schema.json`` and only then typed.
Nothing is cached between calls.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from ..config import settings
from ..errors import (
    CollaboratorTimeoutError,
    CollaboratorUnavailableError,
    InvalidPayloadError,
    PlanArchitectError,
    SchemaViolationError,
)
from ..schemas.goal import GoalPlanRequest, GoalPlanResponse
from ..utils.dates import coerce_datetime
from .collaborator import OpenAIPlanCollaborator, PlanCollaborator
from .parsing import excerpt, parse_generation_output
from .prompts import build_system_prompt
from .schemas.validator import duplicate_id_issues, validate_against_schema

logger = logging.getLogger(__name__)


def _pydantic_issues(error: ValidationError, prefix: str = "") -> List[Dict[str, str]]:
    issues = []
    for detail in error.errors():
        parts = [prefix] if prefix else []
        parts.extend(str(part) for part in detail.get("loc", ()))
        issues.append({"field": "/".join(parts) or "$", "message": detail.get("msg", "invalid")})
    return issues


def _timeframe_issues(timeframe: Dict[str, Any]) -> List[Dict[str, str]]:
    # Bounds must be readable by the store, which only accepts ISO-8601 dates.
    issues = []
    for bound in ("start", "end"):
        try:
            coerce_datetime(timeframe[bound])
        except ValueError:
            issues.append({"field": f"timeframe/{bound}", "message": f"{timeframe[bound]!r} is not an ISO-8601 date"})
    return issues


def validate_request(body: Any) -> GoalPlanRequest:
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json", exclude_none=True)
    if not isinstance(body, dict):
        raise InvalidPayloadError("Invalid payload.", [{"field": "$", "message": "Request body must be a JSON object"}])

    issues = validate_against_schema("request", body)["issues"]
    if not issues:
        issues = _timeframe_issues(body["timeframe"])
    if issues:
        raise InvalidPayloadError("Invalid payload.", issues)
    try:
        return GoalPlanRequest.model_validate(body)
    except ValidationError as error:
        raise InvalidPayloadError("Invalid payload.", _pydantic_issues(error)) from error


def validate_plan_output(parsed: Any) -> GoalPlanResponse:
    issues = validate_against_schema("plan", parsed)["issues"]
    if isinstance(parsed, dict):
        issues.extend(duplicate_id_issues(parsed.get("milestones")))
    if issues:
        logger.warning("LLM schema issues: %s", issues)
        raise SchemaViolationError("LLM response failed schema validation.", issues)
    try:
        return GoalPlanResponse.model_validate(parsed)
    except ValidationError as error:
        issues = _pydantic_issues(error)
        logger.warning("LLM schema issues: %s", issues)
        raise SchemaViolationError("LLM response failed schema validation.", issues) from error


class PlanGateway:
    def __init__(
        self,
        collaborator: Optional[PlanCollaborator] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.collaborator = collaborator or OpenAIPlanCollaborator()
        self.timeout_seconds = settings.generation_timeout_seconds if timeout_seconds is None else timeout_seconds

    async def _complete(self, instructions: str, payload: str) -> str:
        try:
            return await asyncio.wait_for(self.collaborator.complete(instructions, payload), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as error:
            logger.error("Plan generation timed out after %.1fs", self.timeout_seconds)
            raise CollaboratorTimeoutError("LLM request timed out.") from error
        except PlanArchitectError:
            raise
        except Exception as error:
            logger.exception("Plan generation failed")
            raise CollaboratorUnavailableError("LLM processing failed.") from error

    async def generate_plan(self, body: Any) -> GoalPlanResponse:
        request = validate_request(body)
        reoptimize = request.remainingMilestones is not None
        logger.info(
            "Generating plan for %r (%s, reoptimize=%s)",
            request.goalTitle,
            request.intensity,
            reoptimize,
        )

        instructions = build_system_prompt(reoptimize=reoptimize)
        payload = json.dumps(request.model_dump(mode="json", exclude_none=True))
        content = await self._complete(instructions, payload)
        logger.info("LLM response excerpt: %s", excerpt(content))

        try:
            parsed = parse_generation_output(content)
        except PlanArchitectError:
            logger.error("Invalid JSON from LLM, excerpt: %s", excerpt(content))
            raise
        return validate_plan_output(parsed)
