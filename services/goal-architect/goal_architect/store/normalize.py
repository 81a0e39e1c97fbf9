"""Milestone and plan normalization shared by live mutations and rehydration.

``normalize_plan`` is strict: after filling soft fields it validates the
plan and raises ``InvalidPlanError``. ``rehydrate_plan`` is lenient: any
field it cannot read is replaced with a safe default so a corrupt
snapshot never blocks startup.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import ValidationError

from ..errors import InvalidPlanError
from ..gateway.schemas.validator import duplicate_id_issues
from ..schemas.goal import (
    GOAL_INTENSITIES,
    MILESTONE_CATEGORIES,
    MILESTONE_DIFFICULTIES,
    MILESTONE_STATUSES,
    GoalPlan,
    GoalTimeframe,
    Milestone,
)
from ..utils.dates import coerce_datetime
from ..utils.nanoid import nanoid
from ..utils.numbers import round_half_up

logger = logging.getLogger(__name__)


def compute_goal_health(milestones: List[Milestone]) -> int:
    if not milestones:
        return 0
    completed = len([milestone for milestone in milestones if milestone.status == "completed"])
    return int(round_half_up(completed / len(milestones) * 100))


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def normalize_milestone(milestone: Any) -> Any:
    """Fill the soft fields of a milestone mapping; leave everything else for validation."""
    if isinstance(milestone, Milestone):
        milestone = milestone.model_dump()
    if not isinstance(milestone, Mapping):
        return milestone
    normalized = dict(milestone)
    if not _is_finite_number(normalized.get("estimatedHours")):
        normalized["estimatedHours"] = None
    if normalized.get("difficulty") is None:
        normalized["difficulty"] = "Medium"
    if normalized.get("deliverable") is None:
        normalized["deliverable"] = ""
    for key in ("steps", "tips", "resources"):
        normalized[key] = _as_list(normalized.get(key))
    return normalized


def _issues_from(error: ValidationError) -> List[Dict[str, str]]:
    return [
        {"field": "/".join(str(part) for part in detail.get("loc", ())) or "$", "message": detail.get("msg", "invalid")}
        for detail in error.errors()
    ]


def normalize_milestones(milestones: Iterable[Any], prefix: str = "milestones") -> List[Milestone]:
    """Normalize and validate a milestone sequence, collecting every issue."""
    normalized: List[Milestone] = []
    issues: List[Dict[str, str]] = []
    raw = list(milestones)
    for index, milestone in enumerate(raw):
        try:
            normalized.append(Milestone.model_validate(normalize_milestone(milestone)))
        except ValidationError as error:
            for issue in _issues_from(error):
                field = f"{prefix}/{index}" if issue["field"] == "$" else f"{prefix}/{index}/{issue['field']}"
                issues.append({"field": field, "message": issue["message"]})
    if not issues:
        issues = duplicate_id_issues([{"id": milestone.id} for milestone in normalized], prefix)
    if issues:
        raise InvalidPlanError("Plan failed validation.", issues)
    return normalized


def normalize_plan(plan: Any) -> GoalPlan:
    if isinstance(plan, GoalPlan):
        plan = plan.model_dump()
    if not isinstance(plan, Mapping):
        raise InvalidPlanError("Plan failed validation.", [{"field": "$", "message": "Plan must be an object"}])

    milestones = plan.get("milestones")
    if milestones is None:
        milestones = []
    if not isinstance(milestones, (list, tuple)):
        raise InvalidPlanError("Plan failed validation.", [{"field": "milestones", "message": "Input should be a valid list"}])

    normalized_milestones = normalize_milestones(milestones)
    try:
        return GoalPlan.model_validate({**plan, "milestones": normalized_milestones})
    except ValidationError as error:
        raise InvalidPlanError("Plan failed validation.", _issues_from(error)) from error


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _choice(value: Any, allowed: Iterable[str], default: str) -> str:
    return value if value in tuple(allowed) else default


def coerce_milestone(raw: Any, seen_ids: Set[str]) -> Optional[Milestone]:
    if not isinstance(raw, Mapping):
        return None

    milestone_id = raw.get("id")
    if not isinstance(milestone_id, str) or not milestone_id or milestone_id in seen_ids:
        milestone_id = nanoid()
    seen_ids.add(milestone_id)

    minutes = raw.get("estimatedMinutes")
    minutes = int(minutes) if _is_finite_number(minutes) and minutes >= 0 else 0
    hours = raw.get("estimatedHours")
    hours = hours if _is_finite_number(hours) and hours >= 0 else None

    resources = [
        {"title": resource["title"], "url": resource["url"]}
        for resource in _as_list(raw.get("resources"))
        if isinstance(resource, Mapping) and isinstance(resource.get("title"), str) and isinstance(resource.get("url"), str)
    ]
    return Milestone(
        id=milestone_id,
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        deliverable=_text(raw.get("deliverable")),
        category=_choice(raw.get("category"), MILESTONE_CATEGORIES, "Study"),
        status=_choice(raw.get("status"), MILESTONE_STATUSES, "pending"),
        difficulty=_choice(raw.get("difficulty"), MILESTONE_DIFFICULTIES, "Medium"),
        estimatedMinutes=minutes,
        estimatedHours=hours,
        steps=[step for step in _as_list(raw.get("steps")) if isinstance(step, str)],
        tips=[tip for tip in _as_list(raw.get("tips")) if isinstance(tip, str)],
        resources=resources,
    )


def _read_bound(value: Any) -> Optional[datetime]:
    try:
        return coerce_datetime(value)
    except ValueError:
        return None


def coerce_timeframe(timeframe: Mapping) -> GoalTimeframe:
    """Read each bound independently; an unreadable one falls back to the other, then to now."""
    start = _read_bound(timeframe.get("start"))
    end = _read_bound(timeframe.get("end"))
    if start is None or end is None:
        logger.warning(
            "Coercing unreadable persisted timeframe start=%r end=%r",
            timeframe.get("start"),
            timeframe.get("end"),
        )
    fallback = start or end or datetime.now(timezone.utc)
    return GoalTimeframe(start=start or fallback, end=end or fallback)


def rehydrate_plan(raw: Any) -> Optional[GoalPlan]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        logger.warning("Discarding persisted plan: expected an object, got %s", type(raw).__name__)
        return None

    timeframe = raw.get("timeframe")
    parsed_timeframe = coerce_timeframe(timeframe if isinstance(timeframe, Mapping) else {})

    seen_ids: Set[str] = set()
    milestones: List[Milestone] = []
    raw_milestones = _as_list(raw.get("milestones"))
    for entry in raw_milestones:
        milestone = coerce_milestone(entry, seen_ids)
        if milestone is not None:
            milestones.append(milestone)
    if len(milestones) != len(raw_milestones):
        logger.warning("Dropped %d unreadable persisted milestones", len(raw_milestones) - len(milestones))

    return GoalPlan(
        goalTitle=_text(raw.get("goalTitle")),
        timeframe=parsed_timeframe,
        intensity=_choice(raw.get("intensity"), GOAL_INTENSITIES, "Standard"),
        milestones=milestones,
    )
