from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

AGENT_KIND = "Agent"
LEGACY_AGENT_KIND = "ResearchAgent"

_PARAMETER_TYPE_ALIASES = {
    "integer": "int",
    "boolean": "bool",
    "str": "string",
}


class ParameterType(str, Enum):
    string = "string"
    int = "int"
    bool = "bool"


class ChatRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class AnalysisState(str, Enum):
    awaiting_model = "awaiting_model"
    dispatching_tools = "dispatching_tools"
    done = "done"
    failed = "failed"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class AgentParameter(_Frozen):
    name: str = Field(min_length=1)
    type: ParameterType = ParameterType.string
    required: bool = False
    default: Any = None
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _PARAMETER_TYPE_ALIASES.get(lowered, lowered)
        return value

    def default_as_env(self) -> Optional[str]:
        if self.default is None:
            return None
        if isinstance(self.default, bool):
            return "true" if self.default else "false"
        return str(self.default)


class AgentTool(_Frozen):
    name: str = Field(min_length=1)
    description: str = ""
    command: str = Field(min_length=1)
    args: List[str] = Field(default_factory=list)
    input_schema: Optional[Dict[str, Any]] = Field(default=None, alias="inputSchema")


class RunnerCommand(_Frozen):
    command: str = Field(min_length=1)
    args: List[str] = Field(default_factory=list)


class ToolkitSpec(_Frozen):
    tools: List[AgentTool]
    parameters: List[AgentParameter] = Field(default_factory=list)


class LegacyRunnerSpec(_Frozen):
    runner: RunnerCommand
    parameters: List[AgentParameter] = Field(default_factory=list)


AgentSpec = Union[ToolkitSpec, LegacyRunnerSpec]


class AgentMetadata(_Frozen):
    name: str
    description: str = ""


class AgentDefinition(_Frozen):
    api_version: str = Field(alias="apiVersion")
    kind: str
    metadata: AgentMetadata
    spec: AgentSpec

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def description(self) -> str:
        return self.metadata.description

    @property
    def is_toolkit(self) -> bool:
        return isinstance(self.spec, ToolkitSpec)

    @property
    def tools(self) -> List[AgentTool]:
        if isinstance(self.spec, ToolkitSpec):
            return list(self.spec.tools)
        return []

    @property
    def runner(self) -> Optional[RunnerCommand]:
        if isinstance(self.spec, LegacyRunnerSpec):
            return self.spec.runner
        return None

    @property
    def parameters(self) -> List[AgentParameter]:
        return list(self.spec.parameters)

    def get_tool(self, tool_name: str) -> Optional[AgentTool]:
        for tool in self.tools:
            if tool.name == tool_name:
                return tool
        return None

    def parameter_defaults(self) -> Dict[str, str]:
        defaults: Dict[str, str] = {}
        for parameter in self.parameters:
            value = parameter.default_as_env()
            if value is not None:
                defaults[parameter.name] = value
        return defaults


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: str = ""


class ChatMessage(BaseModel):
    role: ChatRole
    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None


class ChatResponse(BaseModel):
    message: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    finish_reason: str = ""


class ToolSchema(BaseModel):
    name: str
    description: str
    parameters: Optional[Dict[str, Any]] = None


class RunOptions(BaseModel):
    agent_name: str
    source_path: str
    output_path: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)


class RunResult(BaseModel):
    output_path: str
    exit_code: int


class AnalysisPrompts(BaseModel):
    system_prompt: str
    initial_user_prompt: str


class DocumentTemplate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    prompt: str = ""
    schema_def: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    html: str = ""
    analysis: Optional[AnalysisPrompts] = None


class GenerateOptions(BaseModel):
    template_type: str
    sources: List[str] = Field(default_factory=list)
    output_file: str
    dry_run: bool = False
    force: bool = False
    max_repairs: int = 3


class AnalysisOptions(BaseModel):
    agent_name: str
    template: DocumentTemplate
    source_path: str = ""
    max_turns: int = 10
    agent_params: Dict[str, str] = Field(default_factory=dict)


class GenerationResult(BaseModel):
    output_file: str
    json_file: Optional[str] = None
    dry_run: bool = False
    attempts: int = 0
    prompt_preview: str = ""
    estimated_tokens: int = 0
