from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from docloom.core import logging as core_logging
from docloom.core.errors import (
    AgentNotFoundError,
    AgentOutputError,
    GenerationError,
    ProcessExecutionError,
    ToolNotFoundError,
)
from docloom.core.models import AgentDefinition, RunOptions, RunResult
from docloom.framework.tool_runtime import (
    build_environment,
    find_placeholders,
    merge_parameters,
    run_process,
    substitute_placeholders,
)

from .cache import ArtifactCache
from .registry import AgentRegistry

SOURCE_PATH = "SOURCE_PATH"
OUTPUT_PATH = "OUTPUT_PATH"


class AgentExecutor:
    def __init__(
        self,
        registry: AgentRegistry,
        cache: ArtifactCache,
        *,
        parameters: Optional[Mapping[str, str]] = None,
        timeout_s: Optional[float] = None,
        logger: Any = None,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.parameters = dict(parameters or {})
        self.timeout_s = timeout_s
        self.logger = logger or core_logging.get_logger("agent_executor")

    def _resolve(self, agent_name: str) -> AgentDefinition:
        definition = self.registry.get(agent_name)
        if definition is None:
            raise AgentNotFoundError(agent_name)
        return definition

    def _allocate_output(self, agent_name: str) -> str:
        try:
            return str(self.cache.create_run_directory(agent_name))
        except OSError as exc:
            raise AgentOutputError(
                f"failed to create output directory for agent '{agent_name}': {exc}"
            ) from exc

    def run_tool(
        self, agent_name: str, tool_name: str, params: Optional[Mapping[str, str]] = None
    ) -> str:
        """Run one tool of an agent and return its stdout verbatim."""
        definition = self._resolve(agent_name)
        tool = definition.get_tool(tool_name)
        if tool is None:
            raise ToolNotFoundError(agent_name, tool_name)

        merged = merge_parameters(definition.parameter_defaults(), self.parameters, params)
        if OUTPUT_PATH in find_placeholders(tool.args) and OUTPUT_PATH not in merged:
            merged[OUTPUT_PATH] = self._allocate_output(agent_name)

        argv = [tool.command, *substitute_placeholders(tool.args, merged)]
        env = build_environment(merged)
        self.logger.info(
            "tool_execution_started", agent=agent_name, tool=tool_name, command=tool.command
        )
        output, exit_code = run_process(
            argv, env, logger=self.logger, agent=agent_name, tool=tool_name, timeout_s=self.timeout_s
        )
        if exit_code != 0:
            raise ProcessExecutionError(
                f"tool '{tool_name}' of agent '{agent_name}' exited with code {exit_code}",
                exit_code=exit_code,
            )
        self.logger.info(
            "tool_execution_completed", agent=agent_name, tool=tool_name, output_bytes=len(output)
        )
        return output

    def run(self, options: RunOptions) -> RunResult:
        """Run a legacy single-runner agent against a source path."""
        definition = self._resolve(options.agent_name)
        runner = definition.runner
        if runner is None:
            raise GenerationError(
                f"agent '{options.agent_name}' defines tools; use the analysis loop instead of run"
            )

        output_path = options.output_path
        if not output_path:
            output_path = self._allocate_output(options.agent_name)
        merged = merge_parameters(definition.parameter_defaults(), self.parameters, options.parameters)
        paths = {SOURCE_PATH: options.source_path, OUTPUT_PATH: output_path}

        placeholders = find_placeholders(runner.args)
        if SOURCE_PATH in placeholders or OUTPUT_PATH in placeholders:
            args = substitute_placeholders(runner.args, {**merged, **paths})
        else:
            args = [
                *substitute_placeholders(runner.args, merged),
                options.source_path,
                output_path,
            ]
        argv = [runner.command, *args]
        self.logger.info(
            "agent_run_started", agent=options.agent_name, command=runner.command, output=output_path
        )
        stdout, exit_code = run_process(
            argv,
            build_environment(merged),
            logger=self.logger,
            agent=options.agent_name,
            tool="runner",
            timeout_s=self.timeout_s,
        )
        if stdout:
            self.logger.debug("agent_stdout", agent=options.agent_name, output=stdout)
        if exit_code != 0:
            raise ProcessExecutionError(
                f"agent '{options.agent_name}' exited with code {exit_code}", exit_code=exit_code
            )
        self.logger.info("agent_run_completed", agent=options.agent_name, output=output_path)
        return RunResult(output_path=output_path, exit_code=exit_code)

    def validate_output(self, output_path: str | Path) -> None:
        path = Path(output_path)
        if not path.is_dir():
            raise AgentOutputError(f"agent output directory does not exist: {path}")
        if not any(item.is_file() for item in path.rglob("*")):
            raise AgentOutputError(f"agent produced no artifacts in {path}")
