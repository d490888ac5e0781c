from __future__ import annotations

import os
import time
from pathlib import Path

import pytest
from conftest import shell_tool, write_manifest

from docloom import cli


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("DOCLOOM_") or name == "OPENAI_API_KEY":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


def _write_source(tmp_path: Path) -> Path:
    source = tmp_path / "notes.md"
    source.write_text("# Notes\nThree layers.\n", encoding="utf-8")
    return source


def test_agents_list_empty(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["agents", "list"]) == 0
    assert "No agents found." in capsys.readouterr().out


def test_agents_list_and_describe(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    agents_dir = tmp_path / "extra-agents"
    write_manifest(
        agents_dir,
        "csharp-analyzer",
        description="Inspects C# repositories",
        tools=[shell_tool("list_projects", "printf x", "${SOURCE_PATH}", description="List projects")],
        parameters=[{"name": "depth", "type": "int", "default": 2, "description": "Scan depth"}],
    )

    assert cli.main(["agents", "list", "--agent-path", str(agents_dir)]) == 0
    listing = capsys.readouterr().out
    assert "csharp-analyzer" in listing
    assert "Inspects C# repositories" in listing

    assert cli.main(["agents", "describe", "csharp-analyzer", "--agent-path", str(agents_dir)]) == 0
    described = capsys.readouterr().out
    assert "- list_projects: List projects" in described
    assert "- depth (int) [default: 2]: Scan depth" in described


def test_agents_describe_unknown(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["agents", "describe", "ghost"]) == 1
    assert "error: agent not found: ghost" in capsys.readouterr().err


def test_templates_list(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["templates", "list"]) == 0
    out = capsys.readouterr().out
    assert "architecture-vision" in out
    assert "[analysis]" in out


def test_cache_clean(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cache_dir = tmp_path / "cache"
    stale = cache_dir / "old-run"
    stale.mkdir(parents=True)
    old = time.time() - 3 * 3600
    os.utime(stale, (old, old))

    assert cli.main(["cache", "clean", "--max-age-hours", "1", "--cache-dir", str(cache_dir)]) == 0
    assert "Removed 1 cache directory." in capsys.readouterr().out
    assert not stale.exists()


def test_generate_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_source(tmp_path)
    out = tmp_path / "vision.html"

    code = cli.main(
        ["generate", "--type", "architecture-vision", "--source", str(source), "--out", str(out), "--dry-run"]
    )

    assert code == 0
    printed = capsys.readouterr().out
    assert "=== DRY RUN MODE ===" in printed
    assert "Estimated tokens:" in printed
    assert "=== SCHEMA ===" in printed
    assert not out.exists()


def test_generate_with_mock_provider(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DOCLOOM_LLM_PROVIDER", "mock")
    source = _write_source(tmp_path)
    out = tmp_path / "docs" / "vision.html"

    assert cli.main(["generate", "-t", "architecture-vision", "-s", str(source), "-o", str(out)]) == 0
    assert out.exists()
    assert (tmp_path / "docs" / "vision.json").read_text(encoding="utf-8") == "{}"
    assert "Generated" in capsys.readouterr().out


def test_generate_with_toolkit_agent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCLOOM_LLM_PROVIDER", "mock")
    write_manifest(tmp_path / ".docloom" / "agents", "scanner", tools=[shell_tool("scan", "printf ok")])
    out = tmp_path / "vision.html"

    code = cli.main(
        [
            "generate",
            "-t",
            "architecture-vision",
            "-s",
            str(tmp_path),
            "-o",
            str(out),
            "--agent",
            "scanner",
            "--agent-param",
            "depth=2",
        ]
    )

    assert code == 0
    assert out.exists()


def test_generate_refuses_existing_output(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    source = _write_source(tmp_path)
    out = tmp_path / "vision.html"
    out.write_text("keep", encoding="utf-8")

    code = cli.main(
        ["--config", str(tmp_path / "none.yaml"), "generate", "-t", "architecture-vision", "-s", str(source), "-o", str(out)]
    )
    assert code == 1
    assert "failed to read config file" in capsys.readouterr().err

    monkeypatch.setenv("DOCLOOM_LLM_PROVIDER", "mock")
    assert cli.main(["generate", "-t", "architecture-vision", "-s", str(source), "-o", str(out)]) == 1
    assert "already exists" in capsys.readouterr().err
    assert out.read_text(encoding="utf-8") == "keep"


def test_generate_requires_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_source(tmp_path)
    code = cli.main(["generate", "-t", "architecture-vision", "-s", str(source), "-o", str(tmp_path / "x.html")])
    assert code == 1
    assert "API key is required" in capsys.readouterr().err


def test_invalid_agent_param(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_source(tmp_path)
    code = cli.main(
        ["generate", "-t", "architecture-vision", "-s", str(source), "-o", "x.html", "--agent-param", "novalue"]
    )
    assert code == 1
    assert "expected key=value" in capsys.readouterr().err


def test_generate_uses_extra_agent_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCLOOM_LLM_PROVIDER", "mock")
    agents_dir = tmp_path / "extra-agents"
    write_manifest(agents_dir, "scanner", tools=[shell_tool("scan", "printf ok")])
    out = tmp_path / "vision.html"
    argv = ["generate", "-t", "architecture-vision", "-s", str(tmp_path), "-o", str(out), "--agent", "scanner"]

    assert cli.main(argv) == 1
    assert cli.main([*argv, "--agent-path", str(agents_dir)]) == 0
    assert out.exists()
