from __future__ import annotations

from pathlib import Path

import pytest
from conftest import shell_tool, write_manifest

from docloom.agents.registry import AgentRegistry
from docloom.core.errors import DiscoveryError


def test_discover_then_get_returns_declared_name(tmp_path: Path) -> None:
    write_manifest(tmp_path, "alpha", tools=[shell_tool("ping", "echo pong")])
    write_manifest(
        tmp_path,
        "beta",
        tools=[shell_tool("ping", "echo pong")],
        filename="second.agent.yml",
    )
    registry = AgentRegistry([tmp_path])
    registry.discover()

    alpha = registry.get("alpha")
    beta = registry.get("beta")
    assert alpha is not None and alpha.metadata.name == "alpha"
    assert beta is not None and beta.metadata.name == "beta"
    assert registry.get("gamma") is None


def test_non_manifest_files_are_ignored(tmp_path: Path) -> None:
    write_manifest(tmp_path, "kept", tools=[shell_tool("t", "true")])
    write_manifest(tmp_path, "ignored-yaml", tools=[shell_tool("t", "true")], filename="x.yaml")
    write_manifest(tmp_path, "ignored-txt", tools=[shell_tool("t", "true")], filename="y.agent.txt")
    write_manifest(tmp_path / "nested", "nested", tools=[shell_tool("t", "true")])
    registry = AgentRegistry([tmp_path])
    registry.discover()
    assert [definition.name for definition in registry.list()] == ["kept"]


def test_missing_search_path_is_skipped(tmp_path: Path) -> None:
    write_manifest(tmp_path / "agents", "only", tools=[shell_tool("t", "true")])
    registry = AgentRegistry([tmp_path / "missing", tmp_path / "agents"])
    registry.discover()
    assert [definition.name for definition in registry.list()] == ["only"]


def test_malformed_manifest_aborts_discovery(tmp_path: Path) -> None:
    write_manifest(tmp_path, "good", tools=[shell_tool("t", "true")])
    (tmp_path / "zz-bad.agent.yaml").write_text("kind: Agent\n", encoding="utf-8")
    registry = AgentRegistry([tmp_path])
    with pytest.raises(DiscoveryError, match="missing apiVersion"):
        registry.discover()


def test_rediscover_is_idempotent(tmp_path: Path) -> None:
    write_manifest(tmp_path, "one", tools=[shell_tool("t", "true")])
    write_manifest(tmp_path, "two", runner={"command": "/bin/true"})
    registry = AgentRegistry([tmp_path])
    registry.discover()
    first = registry.list()
    registry.discover()
    second = registry.list()
    assert [d.name for d in first] == ["one", "two"]
    assert first == second


def test_later_search_path_overrides_same_name(tmp_path: Path) -> None:
    write_manifest(tmp_path / "a", "shared", tools=[shell_tool("t", "true")], description="first")
    write_manifest(tmp_path / "b", "shared", tools=[shell_tool("t", "true")], description="second")
    registry = AgentRegistry([tmp_path / "a"])
    registry.add_search_path(tmp_path / "b")
    registry.discover()
    definition = registry.get("shared")
    assert definition is not None
    assert definition.description == "second"


def test_default_search_paths() -> None:
    registry = AgentRegistry()
    paths = [str(path) for path in registry.search_paths]
    assert paths[0] == ".docloom/agents"
    assert paths[1].endswith(".docloom/agents")
    assert not paths[1].startswith("~")
