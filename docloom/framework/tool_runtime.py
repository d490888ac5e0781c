from __future__ import annotations

import os
import re
import subprocess
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from docloom.core.errors import ProcessExecutionError, ProcessTimeoutError

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")
ENV_PREFIX = "PARAM_"
READER_JOIN_TIMEOUT_S = 5.0


def find_placeholders(args: Sequence[str]) -> List[str]:
    """Return distinct placeholder names in first-seen order."""
    seen: List[str] = []
    for arg in args:
        for name in PLACEHOLDER_PATTERN.findall(arg):
            if name not in seen:
                seen.append(name)
    return seen


def substitute_placeholders(args: Sequence[str], params: Mapping[str, str]) -> List[str]:
    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key in params:
            return str(params[key])
        return match.group(0)

    return [PLACEHOLDER_PATTERN.sub(replace, arg) for arg in args]


def merge_parameters(*layers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    merged: Dict[str, str] = {}
    for layer in layers:
        if layer:
            merged.update({key: str(value) for key, value in layer.items()})
    return merged


def build_environment(
    params: Mapping[str, str], base: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    for key, value in params.items():
        env[f"{ENV_PREFIX}{key.upper()}"] = str(value)
    return env


def run_process(
    argv: Sequence[str],
    env: Mapping[str, str],
    *,
    logger: Any,
    agent: str,
    tool: str,
    timeout_s: Optional[float] = None,
    cwd: Optional[str] = None,
) -> Tuple[str, int]:
    """Run argv to completion.

    stdout is buffered and returned verbatim; stderr is streamed line by line to
    the logger. Both pipes are drained on background threads while the caller
    blocks on process exit.
    """
    try:
        proc = subprocess.Popen(
            list(argv),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            env=dict(env),
            cwd=cwd,
        )
    except (OSError, ValueError) as exc:
        # ValueError: NUL bytes in args or env, or '=' in an env name
        raise ProcessExecutionError(f"failed to start command {argv[0]!r}: {exc}") from exc

    stdout_chunks: List[bytes] = []

    def drain_stdout() -> None:
        for chunk in iter(lambda: proc.stdout.read1(65536), b""):
            stdout_chunks.append(chunk)

    def drain_stderr() -> None:
        for raw_line in proc.stderr:
            line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
            logger.debug("agent_stderr", agent=agent, tool=tool, stream="stderr", line=line)

    readers = [
        threading.Thread(target=drain_stdout, name=f"{agent}-{tool}-stdout", daemon=True),
        threading.Thread(target=drain_stderr, name=f"{agent}-{tool}-stderr", daemon=True),
    ]
    for reader in readers:
        reader.start()

    try:
        exit_code = proc.wait(timeout=timeout_s if timeout_s and timeout_s > 0 else None)
    except subprocess.TimeoutExpired as exc:
        proc.kill()
        proc.wait()
        raise ProcessTimeoutError(
            f"command {argv[0]!r} timed out after {timeout_s}s", timeout_s=float(timeout_s)
        ) from exc
    finally:
        _finish_readers(proc, readers, logger=logger, agent=agent, tool=tool)
    return b"".join(stdout_chunks).decode("utf-8", errors="replace"), exit_code


def _finish_readers(
    proc: subprocess.Popen, readers: List[threading.Thread], *, logger: Any, agent: str, tool: str
) -> None:
    # A child the tool left running may keep the pipes open after exit.
    for reader in readers:
        reader.join(timeout=READER_JOIN_TIMEOUT_S)
    if any(reader.is_alive() for reader in readers):
        logger.warning("agent_output_pipe_held_open", agent=agent, tool=tool)
        return
    proc.stdout.close()
    proc.stderr.close()
