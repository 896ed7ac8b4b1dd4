"""
Toolkit configuration.

Defaults live on ToolkitConfig. load_config layers, in order:
    1. defaults
    2. an optional YAML file (flat mapping of field name -> value)
    3. environment variables

Unknown keys in the YAML file are reported with a warning and ignored;
values that cannot be converted raise ConfigError.
"""

import logging
import os
import warnings
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from basicv2.errors import ConfigError
from basicv2.repair import INTENTS

ENV_VARS = {
    "BASICV2_MAX_STEPS": "max_steps",
    "NORMALIZATION_CONFIDENCE_MIN": "confidence_threshold",
    "BASICV2_MAX_REPAIR_ATTEMPTS": "max_repair_attempts",
    "BASICV2_LOG_LEVEL": "log_level",
}


@dataclass(frozen=True)
class ToolkitConfig:
    """
    Settings shared by the CLI and the pipeline.

    Properties:
        max_steps: Interpreter line-step ceiling
        confidence_threshold: Minimum confidence score to accept a repair
        max_repair_attempts: Lint-driven repair rounds per pipeline run
        default_intent: Intent used when none is given
        log_level: Name of a logging level
    """

    max_steps: int = 2200
    confidence_threshold: float = 0.45
    max_repair_attempts: int = 3
    default_intent: str = "general"
    log_level: str = "WARNING"


def _coerce(name: str, value: Any) -> Any:
    try:
        if name in ("max_steps", "max_repair_attempts"):
            result = int(value)
            if result < 1:
                raise ValueError("must be at least 1")
            return result
        if name == "confidence_threshold":
            result = float(value)
            if not 0 <= result <= 1:
                raise ValueError("must be between 0 and 1")
            return result
        if name == "default_intent":
            result = str(value).strip().lower()
            if result not in INTENTS:
                raise ValueError(f"must be one of {', '.join(INTENTS)}")
            return result
        if name == "log_level":
            result = str(value).strip().upper()
            if not isinstance(logging.getLevelName(result), int):
                raise ValueError("unknown logging level")
            return result
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r} ({e})") from e
    return value


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> ToolkitConfig:
    """
    Build a ToolkitConfig from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file path (optional)
        env: Environment mapping (defaults to os.environ)

    Returns:
        ToolkitConfig

    Raises:
        ConfigError: If the file cannot be read or a value is invalid
    """
    env = os.environ if env is None else env
    known = {f.name for f in fields(ToolkitConfig)}
    overrides: Dict[str, Any] = {}

    if path:
        for key, value in _read_yaml(path).items():
            if key not in known:
                warnings.warn(f"Unknown config key '{key}' in {path} ignored", UserWarning)
                continue
            overrides[key] = _coerce(key, value)

    for var, name in ENV_VARS.items():
        value = env.get(var)
        if value is not None and str(value).strip():
            overrides[name] = _coerce(name, value)

    return replace(ToolkitConfig(), **overrides)
