from __future__ import annotations

from pathlib import Path
from typing import Optional


class DocloomError(Exception):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class AgentNotFoundError(DocloomError):
    def __init__(self, agent_name: str) -> None:
        super().__init__(f"agent not found: {agent_name}")
        self.agent_name = agent_name


class ToolNotFoundError(DocloomError):
    def __init__(self, agent_name: str, tool_name: str) -> None:
        super().__init__(f"tool '{tool_name}' not found in agent '{agent_name}'")
        self.agent_name = agent_name
        self.tool_name = tool_name


class ProcessExecutionError(DocloomError):
    """A tool or runner process failed to start or exited non-zero."""

    def __init__(self, detail: str, exit_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.exit_code = exit_code


class ProcessTimeoutError(ProcessExecutionError):
    def __init__(self, detail: str, timeout_s: float) -> None:
        super().__init__(detail, exit_code=None)
        self.timeout_s = timeout_s


class DiscoveryError(DocloomError):
    """A manifest could not be read, parsed or validated."""

    def __init__(self, detail: str, path: Optional[Path] = None) -> None:
        message = f"{detail} (file: {path})" if path is not None else detail
        super().__init__(message)
        self.path = path


class AgentOutputError(DocloomError):
    pass


class AIRequestError(DocloomError):
    pass


class ToolCallingUnsupportedError(AIRequestError):
    pass


class SchemaValidationError(DocloomError):
    def __init__(self, detail: str, field: str = "") -> None:
        super().__init__(detail)
        self.field = field


class RepairExhaustedError(DocloomError):
    def __init__(self, attempts: int, last_error: str) -> None:
        super().__init__(
            f"failed to generate valid JSON after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class AnalysisLoopMaxTurnsError(DocloomError):
    def __init__(self, max_turns: int) -> None:
        super().__init__(
            f"analysis loop reached maximum turns ({max_turns}) without completion"
        )
        self.max_turns = max_turns


class TemplateError(DocloomError):
    pass


class GenerationError(DocloomError):
    pass
