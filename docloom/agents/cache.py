from __future__ import annotations

import os
import shutil
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from docloom.core import logging as core_logging

LOGGER = core_logging.get_logger("artifact_cache")

DEFAULT_MAX_AGE = timedelta(hours=24)


class ArtifactCache:
    """Owns the per-run working directories agents write their artifacts into."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "docloom-agent-cache"
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def create_run_directory(self, agent_name: str) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        run_id = f"{agent_name}-{timestamp}-{os.getpid()}"
        run_dir = self.base_dir / run_id
        suffix = 1
        while True:
            try:
                run_dir.mkdir(parents=True)
                break
            except FileExistsError:
                run_dir = self.base_dir / f"{run_id}-{suffix}"
                suffix += 1
        LOGGER.debug("run_directory_created", agent=agent_name, path=str(run_dir))
        return run_dir

    def clean(self, max_age: timedelta = DEFAULT_MAX_AGE) -> List[Path]:
        cutoff = time.time() - max_age.total_seconds()
        removed: List[Path] = []
        try:
            entries = list(self.base_dir.iterdir())
        except FileNotFoundError:
            return removed
        for entry in entries:
            try:
                if not entry.is_dir() or entry.stat().st_mtime >= cutoff:
                    continue
            except OSError:
                continue
            shutil.rmtree(entry, ignore_errors=True)
            removed.append(entry)
        if removed:
            LOGGER.info("cache_cleaned", removed=len(removed), base_dir=str(self.base_dir))
        return removed
