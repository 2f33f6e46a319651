"""
Configuration resolution and environment variable substitution.

Secrets such as the remote access token are kept out of config.yaml and
referenced as ``${VAR_NAME}``.
"""

import os
import re
from typing import Any

_ENV_VAR = re.compile(r"\${([^}]+)}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve configuration with environment variable substitution.

    Substitutes ``${VAR_NAME}`` from the process environment (left as-is when
    unset) and the ``{env}`` placeholder with the active environment name.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        Resolved configuration
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    """Recursively resolve values in configuration."""
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    elif isinstance(value, str):
        result = _ENV_VAR.sub(lambda m: os.getenv(m.group(1), m.group(0)), value)
        return result.replace("{env}", env)
    else:
        return value


def is_unresolved(value: Any) -> bool:
    """True if a string still contains an unsubstituted ``${VAR}`` reference."""
    return isinstance(value, str) and _ENV_VAR.search(value) is not None
