from __future__ import annotations

import json
from typing import Any, Dict, List

from docloom.agents.executor import OUTPUT_PATH, SOURCE_PATH, AgentExecutor
from docloom.agents.registry import AgentRegistry
from docloom.core import logging as core_logging
from docloom.core import state_machine
from docloom.core.errors import (
    AgentNotFoundError,
    AIRequestError,
    AnalysisLoopMaxTurnsError,
    DocloomError,
    TemplateError,
)
from docloom.core.llm_provider import ToolCallingProvider
from docloom.core.models import (
    AgentDefinition,
    AnalysisOptions,
    AnalysisState,
    ChatMessage,
    ChatRole,
    ToolCall,
    ToolSchema,
)
from docloom.core.prompts import STRICT_JSON_FOLLOWUP, TOOL_ERROR_PREFIX, analysis_user_prompt
from docloom.framework.tool_runtime import find_placeholders

LOGGER = core_logging.get_logger("analysis")

RESERVED_PARAMETERS = (SOURCE_PATH, OUTPUT_PATH)


def convert_agent_tools(definition: AgentDefinition) -> List[ToolSchema]:
    """Advertise an agent's tools to the model.

    A tool's own `inputSchema` wins; otherwise each `${NAME}` placeholder in its
    args becomes one string property. SOURCE_PATH and OUTPUT_PATH are filled in
    by the loop and never advertised.
    """
    schemas: List[ToolSchema] = []
    for tool in definition.tools:
        if tool.input_schema:
            parameters = dict(tool.input_schema)
        else:
            properties: Dict[str, Any] = {}
            for name in find_placeholders(tool.args):
                if name in RESERVED_PARAMETERS:
                    continue
                properties[name] = {"type": "string", "description": f"Value for {name}"}
            parameters = {"type": "object", "properties": properties}
        schemas.append(ToolSchema(name=tool.name, description=tool.description, parameters=parameters))
    return schemas


def parse_tool_arguments(raw: str) -> Dict[str, str]:
    if not raw or not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {"input": raw}
    if not isinstance(payload, dict):
        return {"input": raw}
    return {str(key): _argument_text(value) for key, value in payload.items()}


def _argument_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


class AnalysisLoop:
    def __init__(
        self,
        provider: ToolCallingProvider,
        registry: AgentRegistry,
        executor: AgentExecutor,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.executor = executor
        self.state = AnalysisState.awaiting_model
        self.messages: List[ChatMessage] = []

    def _transition(self, new_state: AnalysisState) -> None:
        if not state_machine.validate_analysis_transition(self.state, new_state):
            raise RuntimeError(f"invalid analysis transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def run(self, options: AnalysisOptions) -> str:
        """Drive the conversation until the model returns parseable JSON."""
        definition = self.registry.get(options.agent_name)
        if definition is None:
            raise AgentNotFoundError(options.agent_name)
        analysis = options.template.analysis
        if analysis is None or not analysis.system_prompt:
            raise TemplateError(
                f"template '{options.template.name}' does not support agent-based analysis"
            )

        tools = convert_agent_tools(definition)
        self.state = AnalysisState.awaiting_model
        self.messages = [
            ChatMessage(role=ChatRole.system, content=analysis.system_prompt),
            ChatMessage(
                role=ChatRole.user,
                content=analysis_user_prompt(analysis.initial_user_prompt, options.source_path),
            ),
        ]
        LOGGER.info(
            "analysis_loop_started",
            agent=options.agent_name,
            tools=len(tools),
            max_turns=options.max_turns,
        )

        for turn in range(1, options.max_turns + 1):
            LOGGER.debug("analysis_turn", turn=turn, messages=len(self.messages))
            try:
                response = self.provider.chat_with_tools(list(self.messages), tools)
            except AIRequestError:
                self._transition(AnalysisState.failed)
                raise

            if response.tool_calls:
                self._transition(AnalysisState.dispatching_tools)
                LOGGER.debug("tool_calls_requested", turn=turn, count=len(response.tool_calls))
                self.messages.append(
                    ChatMessage(role=ChatRole.assistant, tool_calls=list(response.tool_calls))
                )
                for call in response.tool_calls:
                    self.messages.append(self._dispatch(call, options))
                self._transition(AnalysisState.awaiting_model)
                continue

            if not response.message:
                self._transition(AnalysisState.failed)
                raise AIRequestError("AI response contained neither a message nor tool calls")

            self.messages.append(ChatMessage(role=ChatRole.assistant, content=response.message))
            try:
                json.loads(response.message)
            except ValueError:
                LOGGER.info("analysis_non_json_answer", turn=turn)
                self.messages.append(ChatMessage(role=ChatRole.user, content=STRICT_JSON_FOLLOWUP))
                self._transition(AnalysisState.awaiting_model)
                continue

            self._transition(AnalysisState.done)
            LOGGER.info("analysis_final_answer", turn=turn, length=len(response.message))
            return response.message

        self._transition(AnalysisState.failed)
        raise AnalysisLoopMaxTurnsError(options.max_turns)

    def _dispatch(self, call: ToolCall, options: AnalysisOptions) -> ChatMessage:
        args = parse_tool_arguments(call.arguments)
        for key, value in options.agent_params.items():
            args.setdefault(key, value)
        if options.source_path and SOURCE_PATH not in args:
            args[SOURCE_PATH] = options.source_path

        LOGGER.info("tool_call_dispatched", tool=call.name, id=call.id)
        try:
            output = self.executor.run_tool(options.agent_name, call.name, args)
        except DocloomError as exc:
            LOGGER.error("tool_execution_failed", tool=call.name, id=call.id, error=exc.detail)
            output = f"{TOOL_ERROR_PREFIX}{exc.detail}"
        return ChatMessage(role=ChatRole.tool, content=output, tool_call_id=call.id)
