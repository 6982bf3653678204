from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .issues import Severity


CONFIG_KEYS = ("maxIssues", "ignoredIssues", "severityOverrides")


def load_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read JSON: {path} ({exc})") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"JSON root must be an object: {path}")
    return data


def _parse_codes(value: Any, name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{name} must be an array of issue codes")
    return tuple(value)


def _parse_severity(value: Any, code: str) -> Severity:
    if not isinstance(value, str) or value.upper() not in Severity.__members__:
        raise ConfigError(f"severityOverrides.{code} must be one of ERROR, WARNING, INFO")
    return Severity[value.upper()]


def parse_config(data: dict[str, Any]) -> dict[str, Any]:
    """Maps a validator config object to ValidationOptions keyword arguments."""
    unknown = sorted(set(data) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")

    out: dict[str, Any] = {}
    if "maxIssues" in data:
        max_issues = data["maxIssues"]
        if not isinstance(max_issues, int) or isinstance(max_issues, bool) or max_issues < 0:
            raise ConfigError("maxIssues must be an integer >= 0")
        out["max_issues"] = max_issues
    if "ignoredIssues" in data:
        out["ignored_issues"] = _parse_codes(data["ignoredIssues"], "ignoredIssues")
    if "severityOverrides" in data:
        overrides = data["severityOverrides"]
        if not isinstance(overrides, dict):
            raise ConfigError("severityOverrides must be an object")
        out["severity_overrides"] = {code: _parse_severity(v, code) for code, v in overrides.items()}
    return out
