from __future__ import annotations

import stat
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import structlog
import yaml


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def write_manifest(
    directory: Path,
    name: str,
    tools: Optional[List[Dict[str, Any]]] = None,
    parameters: Optional[List[Dict[str, Any]]] = None,
    runner: Optional[Dict[str, Any]] = None,
    filename: Optional[str] = None,
    description: str = "",
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    spec: Dict[str, Any] = {}
    if tools is not None:
        spec["tools"] = tools
    if runner is not None:
        spec["runner"] = runner
    if parameters is not None:
        spec["parameters"] = parameters
    document = {
        "apiVersion": "docloom.io/v1alpha1",
        "kind": "Agent",
        "metadata": {"name": name, "description": description},
        "spec": spec,
    }
    path = directory / (filename or f"{name}.agent.yaml")
    path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    return path


def write_script(directory: Path, name: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def shell_tool(name: str, script: str, *extra_args: str, description: str = "") -> Dict[str, Any]:
    """Tool that runs `script` under /bin/sh with extra_args as $1, $2, ..."""
    return {
        "name": name,
        "description": description or f"{name} tool",
        "command": "/bin/sh",
        "args": ["-c", script, "sh", *extra_args],
    }
