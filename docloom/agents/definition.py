"""Parsing of `*.agent.yaml` manifests into frozen agent definitions."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from docloom.core.errors import DiscoveryError
from docloom.core.models import (
    AGENT_KIND,
    LEGACY_AGENT_KIND,
    AgentDefinition,
    AgentMetadata,
    LegacyRunnerSpec,
    ToolkitSpec,
)

MANIFEST_SUFFIXES = (".agent.yaml", ".agent.yml")
ACCEPTED_KINDS = (AGENT_KIND, LEGACY_AGENT_KIND)


def is_manifest_name(filename: str) -> bool:
    return filename.endswith(MANIFEST_SUFFIXES)


def parse_agent_manifest(path: Path) -> AgentDefinition:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise DiscoveryError(f"failed to read manifest: {exc}", path) from exc
    except yaml.YAMLError as exc:
        raise DiscoveryError(f"invalid YAML syntax: {exc}", path) from exc
    return parse_agent_document(data, path)


def parse_agent_document(data: Any, path: Optional[Path] = None) -> AgentDefinition:
    if not isinstance(data, dict):
        raise DiscoveryError("manifest root must be a mapping", path)
    if not data.get("apiVersion"):
        raise DiscoveryError("missing apiVersion", path)
    kind = data.get("kind")
    if kind not in ACCEPTED_KINDS:
        raise DiscoveryError(f"invalid kind: {kind} (expected {AGENT_KIND})", path)
    metadata = data.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise DiscoveryError("missing metadata.name", path)

    spec = data.get("spec") or {}
    if not isinstance(spec, dict):
        raise DiscoveryError("spec must be a mapping", path)
    has_tools = bool(spec.get("tools"))
    has_runner = bool(spec.get("runner"))
    if has_tools and has_runner:
        raise DiscoveryError("spec must define either tools or runner, not both", path)
    if not has_tools and not has_runner:
        raise DiscoveryError("spec must define tools or a runner", path)

    try:
        spec_model = _build_spec(spec, has_tools)
        return AgentDefinition(
            api_version=str(data["apiVersion"]),
            kind=kind,
            metadata=AgentMetadata.model_validate(metadata),
            spec=spec_model,
        )
    except ValidationError as exc:
        raise DiscoveryError(f"invalid manifest: {_summarize(exc)}", path) from exc


def _build_spec(spec: Dict[str, Any], has_tools: bool) -> ToolkitSpec | LegacyRunnerSpec:
    parameters = spec.get("parameters") or []
    if has_tools:
        return ToolkitSpec.model_validate({"tools": spec["tools"], "parameters": parameters})
    return LegacyRunnerSpec.model_validate({"runner": spec["runner"], "parameters": parameters})


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors()[:5]:
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)
