from __future__ import annotations

import os
from pathlib import Path

import pytest

from docloom.core.config import DEFAULT_AGENT_PATHS, DocloomConfig, load_config
from docloom.core.errors import GenerationError


def test_defaults() -> None:
    config = load_config(environ={})
    assert config.model == "gpt-4"
    assert config.temperature == 0.7
    assert config.max_retries == 3
    assert config.max_turns == 10
    assert config.agent_paths == DEFAULT_AGENT_PATHS
    assert config.tool_timeout_s is None


def test_precedence_file_env_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "docloom.yaml"
    config_file.write_text("model: from-file\nmax_turns: 4\nseed: 1\nunknown_key: ignored\n", encoding="utf-8")

    config = load_config(
        str(config_file),
        overrides={"seed": 99, "model": None, "base_url": ""},
        environ={"DOCLOOM_MODEL": "from-env"},
    )

    assert config.model == "from-env"
    assert config.max_turns == 4
    assert config.seed == 99
    assert config.base_url == "https://api.openai.com/v1"


def test_malformed_env_values_are_ignored() -> None:
    config = load_config(
        environ={
            "DOCLOOM_TEMPERATURE": "hot",
            "DOCLOOM_MAX_TURNS": "many",
            "DOCLOOM_FORCE": "maybe",
            "DOCLOOM_MAX_REPAIRS": "1",
        }
    )
    assert config.temperature == 0.7
    assert config.max_turns == 10
    assert config.force is False
    assert config.max_repairs == 1


def test_out_of_range_values_are_clamped() -> None:
    config = load_config(
        overrides={"temperature": 5.0, "max_retries": -1, "max_turns": 0, "tool_timeout_s": -3},
        environ={},
    )
    assert config.temperature == 0.7
    assert config.max_retries == 0
    assert config.max_turns == 1
    assert config.tool_timeout_s is None


def test_api_key_fallback_order() -> None:
    assert load_config(environ={"OPENAI_API_KEY": "sk-openai"}).api_key == "sk-openai"
    both = {"OPENAI_API_KEY": "sk-openai", "DOCLOOM_API_KEY": "sk-docloom"}
    assert load_config(environ=both).api_key == "sk-docloom"


def test_agent_paths_from_env_are_appended() -> None:
    extra = os.pathsep.join(["/opt/agents", "", "/srv/agents"])
    config = load_config(environ={"DOCLOOM_AGENT_PATHS": extra})
    assert config.agent_paths == DEFAULT_AGENT_PATHS + ["/opt/agents", "/srv/agents"]


def test_bool_env_values() -> None:
    config = load_config(environ={"DOCLOOM_DRY_RUN": "yes", "DOCLOOM_VERBOSE": "0"})
    assert config.dry_run is True
    assert config.verbose is False


@pytest.mark.parametrize("content", ["model: [unclosed\n", "- just\n- a list\n"])
def test_bad_config_file_is_an_error(tmp_path: Path, content: str) -> None:
    config_file = tmp_path / "docloom.yaml"
    config_file.write_text(content, encoding="utf-8")
    with pytest.raises(GenerationError, match="config file"):
        load_config(str(config_file), environ={})


def test_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(GenerationError, match="failed to read config file"):
        load_config(str(tmp_path / "absent.yaml"), environ={})


def test_invalid_value_type_is_an_error() -> None:
    with pytest.raises(GenerationError, match="invalid configuration"):
        load_config(overrides={"max_turns": "lots"}, environ={})


def test_normalized_returns_same_instance_when_valid() -> None:
    config = DocloomConfig()
    assert config.normalized() is config
