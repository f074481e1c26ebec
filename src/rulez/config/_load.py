# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""YAML policy file discovery and loading."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from rulez.exceptions import ConfigLoadError, ConfigValidationError
from rulez.utils._paths import get_project_config_file, get_user_config_file

from ._models import Config
from ._validation import validate_config

if TYPE_CHECKING:
    from pathlib import Path


def read_yaml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a YAML policy file.

    An empty file parses as an empty mapping.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed, or its top
            level is not a mapping.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Failed to read config file {path}: {e}"
        raise ConfigLoadError(msg, path=path) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        msg = f"Failed to parse YAML in {path}: {e}"
        raise ConfigLoadError(msg, path=path, line=line, column=column) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        actual_type = type(data).__name__
        msg = f"Expected a YAML mapping in {path}, got {actual_type}"
        raise ConfigLoadError(msg, path=path)
    return data


def parse_config(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    *,
    source_file: Path | None = None,
) -> Config:
    """Build a Config from parsed YAML, checking only its schema.

    Raises:
        ConfigValidationError: If the document does not fit the schema.
    """
    source = str(source_file) if source_file is not None else None
    try:
        config = Config.model_validate({**data, "source_file": source_file})
    except ValidationError as e:
        error = e.errors()[0]
        key = ".".join(str(part) for part in error.get("loc", ()))
        msg = f"Invalid configuration at '{key}': {error.get('msg', 'invalid value')}"
        raise ConfigValidationError(
            msg,
            key=key,
            value=error.get("input"),
            expected=str(error.get("type", "valid value")),
            source=source,
        ) from e
    return config


def config_from_dict(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    *,
    source_file: Path | None = None,
) -> Config:
    """Build and validate a Config from parsed YAML.

    Args:
        data: The parsed document.
        source_file: Where the document came from, for error reporting.

    Returns:
        The validated configuration.

    Raises:
        ConfigValidationError: If the document fails schema or semantic
            validation.
    """
    config = parse_config(data, source_file=source_file)
    validate_config(config)
    return config


def load_config_file(path: Path) -> Config:
    """Load and validate a single policy file.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
        ConfigValidationError: If the content fails validation.
    """
    return config_from_dict(read_yaml_file(path), source_file=path)


def find_config_file(root: Path | None = None) -> Path | None:
    """Return the first existing policy file in fallback order.

    The project file (``<root>/.claude/hooks.yaml``) wins over the user file
    (``~/.claude/hooks.yaml``).
    """
    for candidate in (get_project_config_file(root), get_user_config_file()):
        if candidate.is_file():
            return candidate
    return None


def load_config(root: Path | None = None) -> Config:
    """Load the effective policy for a project root.

    Args:
        root: Project root. Defaults to the current working directory.

    Returns:
        The loaded configuration, or an empty default configuration when no
        policy file exists.

    Raises:
        ConfigLoadError: If the selected file cannot be read or parsed.
        ConfigValidationError: If the selected file fails validation.
    """
    path = find_config_file(root)
    if path is None:
        return Config()
    return load_config_file(path)
