import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .errors import (
    ERRORS_BY_CODE,
    CollaboratorTimeoutError,
    CollaboratorUnavailableError,
    PlanArchitectError,
    SchemaViolationError,
)
from .schemas.goal import GoalPlanResponse

logger = logging.getLogger(__name__)

GENERATE_PLAN_PATH = "/api/generate-plan"


def error_from_response(response: httpx.Response) -> PlanArchitectError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("error") or f"Plan generation failed with status {response.status_code}."
    error_cls = ERRORS_BY_CODE.get(body.get("code"), CollaboratorUnavailableError)
    error = error_cls(message)
    issues = body.get("issues")
    if isinstance(issues, list):
        error.issues = issues
    return error


class PlanGatewayClient:
    """Calls a remote plan gateway over HTTP; used by stores that do not embed the gateway."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def generate_plan(self, body: Any) -> GoalPlanResponse:
        if isinstance(body, BaseModel):
            body = body.model_dump(mode="json", exclude_none=True)

        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(GENERATE_PLAN_PATH, json=body)
        except httpx.TimeoutException as error:
            logger.error("Plan gateway timed out: %s", error)
            raise CollaboratorTimeoutError("Plan gateway request timed out.") from error
        except httpx.HTTPError as error:
            logger.error("Plan gateway unreachable: %s", error)
            raise CollaboratorUnavailableError("Failed to reach plan gateway.") from error

        if response.is_error:
            raise error_from_response(response)

        try:
            return GoalPlanResponse.model_validate(response.json())
        except (ValueError, ValidationError) as error:
            raise SchemaViolationError(
                "Plan gateway returned an invalid plan.",
                [{"field": "$", "message": str(error)}],
            ) from error
