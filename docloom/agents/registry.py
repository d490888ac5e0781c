from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from docloom.core import logging as core_logging
from docloom.core.config import DEFAULT_AGENT_PATHS
from docloom.core.errors import DiscoveryError
from docloom.core.models import AgentDefinition

from .definition import is_manifest_name, parse_agent_manifest

LOGGER = core_logging.get_logger("agent_registry")


class AgentRegistry:
    """Name-keyed catalogue of agent definitions discovered on disk.

    Each search path is scanned one directory level deep. A malformed manifest
    aborts the whole discovery call; definitions loaded before the failure stay
    registered.
    """

    def __init__(self, search_paths: Optional[Iterable[str | Path]] = None) -> None:
        paths = DEFAULT_AGENT_PATHS if search_paths is None else search_paths
        self._search_paths: List[Path] = [Path(path).expanduser() for path in paths]
        self._agents: Dict[str, AgentDefinition] = {}
        self._lock = threading.RLock()

    @property
    def search_paths(self) -> List[Path]:
        with self._lock:
            return list(self._search_paths)

    def add_search_path(self, path: str | Path) -> None:
        with self._lock:
            self._search_paths.append(Path(path).expanduser())

    def discover(self) -> None:
        with self._lock:
            for search_path in self._search_paths:
                self._discover_in_path(search_path)
            LOGGER.info("agents_discovered", count=len(self._agents))

    def _discover_in_path(self, search_path: Path) -> None:
        try:
            entries = sorted(search_path.iterdir())
        except FileNotFoundError:
            return
        except OSError as exc:
            raise DiscoveryError(f"error discovering agents in {search_path}: {exc}") from exc
        for entry in entries:
            if entry.is_dir() or not is_manifest_name(entry.name):
                continue
            definition = parse_agent_manifest(entry)
            previous = self._agents.get(definition.name)
            if previous is not None and previous != definition:
                LOGGER.warning("agent_definition_replaced", agent=definition.name, path=str(entry))
            self._agents[definition.name] = definition
            LOGGER.debug("agent_loaded", agent=definition.name, path=str(entry))

    def get(self, name: str) -> Optional[AgentDefinition]:
        with self._lock:
            return self._agents.get(name)

    def list(self) -> List[AgentDefinition]:
        with self._lock:
            return [self._agents[name] for name in sorted(self._agents)]
