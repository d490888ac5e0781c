from .cache import ArtifactCache
from .definition import parse_agent_document, parse_agent_manifest
from .executor import AgentExecutor
from .registry import AgentRegistry

__all__ = [
    "AgentExecutor",
    "AgentRegistry",
    "ArtifactCache",
    "parse_agent_document",
    "parse_agent_manifest",
]
