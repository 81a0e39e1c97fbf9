"""Recovery chain for collaborator text output.

Each stage is a pure function returning either the parsed value or
``PARSE_MISS``. ``parse_generation_output`` runs them in order.
"""

import json
from typing import Any, Callable, List, Tuple

from ..errors import MalformedOutputError

FENCE = "```"
EXCERPT_LENGTH = 400


class ParseMiss:
    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "PARSE_MISS"


PARSE_MISS = ParseMiss()


def strip_code_fences(content: str) -> str:
    trimmed = content.strip()
    if not trimmed.startswith(FENCE):
        return trimmed
    body: List[str] = []
    for line in trimmed.split("\n")[1:]:
        if line.strip().startswith(FENCE):
            break
        body.append(line)
    return "\n".join(body).strip()


def parse_direct(content: str) -> Any:
    try:
        return json.loads(content)
    except ValueError:
        return PARSE_MISS


def parse_brace_slice(content: str) -> Any:
    first_brace = content.find("{")
    last_brace = content.rfind("}")
    if first_brace < 0 or last_brace <= first_brace:
        return PARSE_MISS
    return parse_direct(content[first_brace : last_brace + 1])


PARSE_STAGES: Tuple[Callable[[str], Any], ...] = (parse_direct, parse_brace_slice)


def excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    return (content or "")[:length]


def parse_generation_output(content: str) -> Any:
    stripped = strip_code_fences(content or "")
    for stage in PARSE_STAGES:
        parsed = stage(stripped)
        if parsed is not PARSE_MISS:
            return parsed
    raise MalformedOutputError("LLM returned invalid JSON.", excerpt=excerpt(content))
