import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal

import jsonschema

SchemaType = Literal["milestone", "plan", "request"]

_REQUIRED_PROPERTY = re.compile(r"^'(?P<name>.+)' is a required property$")


def _load_schema(name: str) -> Dict[str, Any]:
    schema_path = Path(__file__).with_name(f"{name}.schema.json")
    with schema_path.open("r", encoding="utf-8") as f:
        return json.load(f)["schema"]


def _with_definitions(schema: Dict[str, Any], **definitions: Dict[str, Any]) -> Dict[str, Any]:
    return {**schema, "definitions": {**schema.get("definitions", {}), **definitions}}


_milestone_schema = _load_schema("milestone")

_compiled_schemas = {
    "milestone": jsonschema.Draft7Validator(_milestone_schema),
    "plan": jsonschema.Draft7Validator(_with_definitions(_load_schema("plan"), milestone=_milestone_schema)),
    "request": jsonschema.Draft7Validator(_with_definitions(_load_schema("request"), milestone=_milestone_schema)),
}


def _field_of(error: jsonschema.ValidationError) -> str:
    parts = [str(part) for part in error.absolute_path]
    if error.validator == "required":
        match = _REQUIRED_PROPERTY.match(error.message)
        if match:
            parts.append(match.group("name"))
    return "/".join(parts) or "$"


def format_issues(errors: Iterable[jsonschema.ValidationError]) -> List[Dict[str, str]]:
    ordered = sorted(errors, key=lambda e: [str(part) for part in e.absolute_path])
    return [{"field": _field_of(err), "message": err.message} for err in ordered]


def validate_against_schema(schema_type: SchemaType, data: Any) -> Dict[str, Any]:
    validator = _compiled_schemas[schema_type]
    issues = format_issues(validator.iter_errors(data))
    if not issues:
        return {"valid": True, "issues": []}
    return {"valid": False, "issues": issues}


def duplicate_id_issues(milestones: Any, prefix: str = "milestones") -> List[Dict[str, str]]:
    if not isinstance(milestones, list):
        return []
    seen = set()
    issues: List[Dict[str, str]] = []
    for index, milestone in enumerate(milestones):
        milestone_id = milestone.get("id") if isinstance(milestone, dict) else None
        if not isinstance(milestone_id, str):
            continue
        if milestone_id in seen:
            issues.append({"field": f"{prefix}/{index}/id", "message": f"Duplicate milestone id {milestone_id!r}"})
        seen.add(milestone_id)
    return issues
