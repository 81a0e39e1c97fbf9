from typing import Any, Dict, List, Optional


class PlanArchitectError(Exception):
    code = "plan_architect_error"
    status_code = 500

    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None) -> None:
        self.message = message
        self.issues = issues or []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.issues:
            body["issues"] = self.issues
        return body


class InvalidPayloadError(PlanArchitectError):
    """Plan request rejected before the collaborator was called."""

    code = "invalid_payload"
    status_code = 400


class MalformedOutputError(PlanArchitectError):
    """Collaborator text could not be recovered as JSON."""

    code = "malformed_output"
    status_code = 502

    def __init__(self, message: str, excerpt: str = "") -> None:
        self.excerpt = excerpt
        super().__init__(message)


class SchemaViolationError(PlanArchitectError):
    """Collaborator returned JSON that does not match the plan schema."""

    code = "schema_violation"
    status_code = 422

    @property
    def fields(self) -> List[str]:
        return [issue["field"] for issue in self.issues]


class CollaboratorUnavailableError(PlanArchitectError):
    code = "collaborator_unavailable"
    status_code = 503


class CollaboratorTimeoutError(PlanArchitectError):
    code = "collaborator_timeout"
    status_code = 504


class CollaboratorNotConfiguredError(PlanArchitectError):
    code = "collaborator_not_configured"
    status_code = 500


class NoActivePlanError(PlanArchitectError):
    code = "no_active_plan"
    status_code = 409


class PlanBusyError(PlanArchitectError):
    """A re-optimization is in flight; conflicting mutations are rejected."""

    code = "plan_busy"
    status_code = 409


class InvalidPlanError(PlanArchitectError):
    code = "invalid_plan"
    status_code = 422


ERRORS_BY_CODE = {
    error.code: error
    for error in (
        InvalidPayloadError,
        MalformedOutputError,
        SchemaViolationError,
        CollaboratorUnavailableError,
        CollaboratorTimeoutError,
        CollaboratorNotConfiguredError,
        NoActivePlanError,
        PlanBusyError,
        InvalidPlanError,
    )
}
