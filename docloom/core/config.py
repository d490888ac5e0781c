from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import GenerationError

DEFAULT_MODEL = "gpt-4"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_AGENT_PATHS = [".docloom/agents", "~/.docloom/agents"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class DocloomConfig(BaseModel):
    llm_provider: str = "openai"
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    seed: Optional[int] = None
    max_retries: int = 3
    max_tokens: Optional[int] = 4096
    timeout_s: float = 60.0
    template_dir: Optional[str] = None
    agent_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_AGENT_PATHS))
    max_turns: int = 10
    max_repairs: int = 3
    tool_timeout_s: Optional[float] = None
    force: bool = False
    verbose: bool = False
    dry_run: bool = False

    def normalized(self) -> "DocloomConfig":
        updates: Dict[str, Any] = {}
        if not 0.0 <= self.temperature <= 2.0:
            updates["temperature"] = DEFAULT_TEMPERATURE
        if self.max_retries < 0:
            updates["max_retries"] = 0
        if self.max_repairs < 0:
            updates["max_repairs"] = 0
        if self.max_turns < 1:
            updates["max_turns"] = 1
        if self.tool_timeout_s is not None and self.tool_timeout_s <= 0:
            updates["tool_timeout_s"] = None
        if not updates:
            return self
        return self.model_copy(update=updates)


def load_config(
    config_file: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DocloomConfig:
    """Resolve configuration: CLI overrides > environment > YAML file > defaults."""
    values: Dict[str, Any] = DocloomConfig().model_dump()
    if config_file:
        values.update(_load_file(config_file))
    values.update(_load_env(os.environ if environ is None else environ, values))
    for key, value in (overrides or {}).items():
        if value is None or value == "":
            continue
        values[key] = value
    try:
        return DocloomConfig.model_validate(values).normalized()
    except ValidationError as exc:
        raise GenerationError(f"invalid configuration: {exc}") from exc


def _load_file(path: str) -> Dict[str, Any]:
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise GenerationError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise GenerationError(f"failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationError(f"config file {path} must contain a mapping")
    known = set(DocloomConfig.model_fields)
    return {key: value for key, value in data.items() if key in known}


def _load_env(environ: Mapping[str, str], current: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, env_name in (
        ("llm_provider", "DOCLOOM_LLM_PROVIDER"),
        ("model", "DOCLOOM_MODEL"),
        ("base_url", "DOCLOOM_BASE_URL"),
        ("template_dir", "DOCLOOM_TEMPLATE_DIR"),
    ):
        if environ.get(env_name):
            values[key] = environ[env_name]

    api_key = environ.get("DOCLOOM_API_KEY") or environ.get("OPENAI_API_KEY")
    if api_key:
        values["api_key"] = api_key

    for key, env_name in (("temperature", "DOCLOOM_TEMPERATURE"), ("timeout_s", "DOCLOOM_TIMEOUT_S"),
                          ("tool_timeout_s", "DOCLOOM_TOOL_TIMEOUT_S")):
        parsed = _parse_optional_float(environ.get(env_name))
        if parsed is not None:
            values[key] = parsed

    for key, env_name in (
        ("seed", "DOCLOOM_SEED"),
        ("max_retries", "DOCLOOM_MAX_RETRIES"),
        ("max_tokens", "DOCLOOM_MAX_TOKENS"),
        ("max_turns", "DOCLOOM_MAX_TURNS"),
        ("max_repairs", "DOCLOOM_MAX_REPAIRS"),
    ):
        parsed_int = _parse_optional_int(environ.get(env_name))
        if parsed_int is not None:
            values[key] = parsed_int

    for key, env_name in (("force", "DOCLOOM_FORCE"), ("verbose", "DOCLOOM_VERBOSE"),
                          ("dry_run", "DOCLOOM_DRY_RUN")):
        parsed_bool = _parse_optional_bool(environ.get(env_name))
        if parsed_bool is not None:
            values[key] = parsed_bool

    extra_paths = environ.get("DOCLOOM_AGENT_PATHS")
    if extra_paths:
        paths = list(current.get("agent_paths") or [])
        paths.extend(part for part in extra_paths.split(os.pathsep) if part)
        values["agent_paths"] = paths
    return values


def _parse_optional_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_optional_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_optional_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None
