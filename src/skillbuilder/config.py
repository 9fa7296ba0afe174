"""Configuration loader with schema validation."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import EditorTarget, RuleStyle, SkillBuilderConfig

CONFIG_FILE = "skillbuilder.json"
DEFAULT_VERSION = "1.0"

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "SkillBuilder Configuration",
    "type": "object",
    "required": ["version", "targets", "style", "skills"],
    "properties": {
        "version": {"type": "string", "minLength": 1},
        "targets": {
            "type": "array",
            "minItems": 1,
            "items": {"enum": [t.value for t in EditorTarget]},
        },
        "style": {"enum": [s.value for s in RuleStyle]},
        "skills": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name", "goal"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string", "minLength": 1},
                    "goal": {"type": "string", "minLength": 1},
                },
            },
        },
        "output": {"type": "object"},
        "limits": {"type": "object"},
    },
}


def find_repo_root(start: Path | None = None) -> Path | None:
    """Find the nearest ancestor directory containing ``.git``.

    Args:
        start: Directory to start from, defaults to the working directory

    Returns:
        Repository root or None if not inside a git repository
    """
    current = Path(start or Path.cwd()).resolve()

    while True:
        if (current / ".git").exists():
            return current
        if current == current.parent:
            return None
        current = current.parent


def _schema_error_message(error: jsonschema.ValidationError, data: Any) -> str:
    path = list(error.absolute_path)

    if not path and error.validator == "required":
        missing = error.message.split("'")[1] if "'" in error.message else "required"
        return f"Config missing {missing} field"
    if path[:1] == ["targets"]:
        if len(path) > 1:
            return f"Invalid target: {error.instance}"
        return "Config must specify at least one target"
    if path == ["style"]:
        return f"Invalid style: {error.instance}"
    if path == ["skills"]:
        return "Config must have skills array"
    if path[:1] == ["skills"] and len(path) > 1:
        skill = data["skills"][path[1]]
        return f"Skill missing required fields: {json.dumps(skill)}"
    return f"Schema validation failed: {error.message}"


def validate_config(data: Any) -> SkillBuilderConfig:
    """Validate raw JSON data and build a configuration value.

    Raises:
        ConfigError: If the data does not satisfy the schema or the models
    """
    validator = jsonschema.Draft7Validator(CONFIG_SCHEMA)
    error = best_match(validator.iter_errors(data))
    if error is not None:
        raise ConfigError(
            _schema_error_message(error, data),
            details={"path": list(error.absolute_path)},
        )

    try:
        return SkillBuilderConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Config validation failed: {e}"
        raise ConfigError(msg) from e


def load_config(repo_root: Path) -> SkillBuilderConfig:
    """Load and validate ``skillbuilder.json`` from ``repo_root``.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    config_path = Path(repo_root) / CONFIG_FILE
    if not config_path.exists():
        msg = f"Config file not found at {config_path}. Run 'skillbuilder init' first."
        raise ConfigError(msg)

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse config JSON: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Failed to read config file: {e}"
        raise ConfigError(msg) from e

    return validate_config(data)


def save_config(config: SkillBuilderConfig, repo_root: Path) -> Path:
    """Write ``config`` to ``skillbuilder.json`` with camelCase keys.

    Raises:
        ConfigError: If the file cannot be written
    """
    config_path = Path(repo_root) / CONFIG_FILE
    try:
        config_path.write_text(
            json.dumps(config.to_json_dict(), indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        msg = f"Failed to write config file: {e}"
        raise ConfigError(msg) from e
    return config_path


def create_default_config(
    targets: Iterable[str],
    style: str = RuleStyle.BALANCED.value,
) -> SkillBuilderConfig:
    """Build a config with default output paths and limits.

    Raises:
        ConfigError: If a target or the style is not recognised
    """
    data = {
        "version": DEFAULT_VERSION,
        "targets": list(targets),
        "style": style,
        "skills": [],
    }
    return validate_config(data)


def slugify(text: str) -> str:
    """Lowercase ``text`` and collapse non-alphanumerics into single hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
