from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from docloom.core import logging as core_logging
from docloom.core.errors import GenerationError

LOGGER = core_logging.get_logger("ingest")

SUPPORTED_EXTENSIONS = (".md", ".markdown", ".txt")


def _is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def ingest_sources(paths: Iterable[str | Path]) -> str:
    """Concatenate supported source files, each behind a `--- File: ... ---` header."""
    sections: List[str] = []
    for raw_path in paths:
        path = Path(raw_path)
        if not path.exists():
            raise GenerationError(f"failed to stat path {path}: no such file or directory")
        if path.is_dir():
            for candidate in sorted(item for item in path.rglob("*") if item.is_file()):
                if not _is_supported(candidate):
                    continue
                try:
                    content = candidate.read_text(encoding="utf-8", errors="replace")
                except OSError as exc:
                    LOGGER.warning("source_read_failed", file=str(candidate), error=str(exc))
                    continue
                sections.append(f"--- File: {candidate} ---\n{content}")
            continue
        if not _is_supported(path):
            LOGGER.warning("source_type_unsupported", file=str(path))
            continue
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise GenerationError(f"failed to read file {path}: {exc}") from exc
        sections.append(f"--- File: {path} ---\n{content}")

    if not sections:
        raise GenerationError("no supported files found in the provided paths")
    combined = "\n\n".join(sections)
    LOGGER.info("ingestion_complete", files=len(sections), total_bytes=len(combined))
    return combined
