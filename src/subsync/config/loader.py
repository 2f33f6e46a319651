"""
Configuration file loading.

Loads ``config.yaml`` from the project directory, overlays an optional
``config.{env}.yaml`` and resolves environment placeholders.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from subsync.config.resolver import resolve_config
from subsync.exceptions import ConfigurationError


class Config:
    """Subsync configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.connections = data.get("connections", {})
        self.remote = data.get("remote", {})
        self.jobs = data.get("jobs", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self.data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            if key not in self:
                raise KeyError(f"Config key '{key}' not found")
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def validate(self) -> None:
        """Validate configuration structure and content."""
        errors = []

        for section in ("connections", "remote", "jobs", "state", "mirror", "logging"):
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Configuration '{section}' must be a dictionary, got {type(value).__name__}")

        connections = self.data.get("connections") or {}
        for ref in ("state", "mirror"):
            name = (self.data.get(ref) or {}).get("connection")
            if name is not None and isinstance(connections, dict) and name not in connections:
                errors.append(f"'{ref}.connection' refers to unknown connection '{name}'")

        if errors:
            raise ConfigurationError("\n".join(errors))


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load subsync configuration.

    Args:
        project_path: Path to project root (default: current directory)
        env: Environment name (dev, staging, prod)

    Returns:
        Config instance with merged configuration

    Raises:
        ConfigurationError: If config.yaml is missing or cannot be parsed
    """
    if project_path is None:
        project_path = Path.cwd()

    base_config_path = project_path / "config.yaml"
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}\n"
            f"  Suggestion: Create a config.yaml file in your project root",
            details={"path": str(base_config_path)},
        )

    config_data = _read_yaml(base_config_path)

    if env:
        env_config_path = project_path / f"config.{env}.yaml"
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config = Config(resolve_config(config_data, env or "dev"))
    config.validate()
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        if hasattr(e, "problem_mark"):
            mark = e.problem_mark
            raise ConfigurationError(
                f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                f"  {e}\n"
                f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
            ) from e
        raise ConfigurationError(f"Error parsing {path.name}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
