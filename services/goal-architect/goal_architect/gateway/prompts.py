from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

PROMPT_PATH = Path(__file__).with_name("plan_architect.yaml")


@lru_cache(maxsize=None)
def load_prompt_config(path: Optional[Path] = None) -> Dict[str, Any]:
    prompt_path = path or PROMPT_PATH
    parsed = yaml.safe_load(prompt_path.read_text(encoding="utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError(f"Prompt file {prompt_path.name} did not produce an object")
    return parsed


def build_system_prompt(reoptimize: bool = False, config: Optional[Dict[str, Any]] = None) -> str:
    prompt = config or load_prompt_config()
    rules: List[str] = list(prompt.get("rules") or [])
    if reoptimize:
        rules.extend(prompt.get("reoptimize_rules") or [])
    lines = [
        str(prompt["role"]),
        str(prompt["schema_intro"]),
        str(prompt["schema_example"]).rstrip("\n"),
        "Rules:",
        *(f"- {rule}" for rule in rules),
    ]
    return "\n".join(lines)
