"""Load the repository policy table (YAML) once at process start."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from merge_bot.models.policy_contracts import Policy, PolicyTable


def load_policy_table(path: Path) -> PolicyTable:
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    return parse_policy_rows(raw if raw is not None else [])


def parse_policy_rows(rows: object) -> PolicyTable:
    if not isinstance(rows, list):
        raise ValueError("Policy file must contain a list of repository entries")

    policies: list[Policy] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValueError(f"Policy entry {index} must be a mapping")
        try:
            policies.append(Policy.model_validate(row))
        except ValidationError as exc:
            raise ValueError(f"Policy entry {index} is invalid: {exc}") from exc
    return PolicyTable.from_entries(policies)
