from __future__ import annotations

import http.client
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from . import logging as core_logging
from .errors import AIRequestError
from .models import ChatMessage, ChatResponse, ChatRole, ToolCall, ToolSchema
from .prompts import JSON_SYSTEM_PROMPT

DEFAULT_BASE_URL = "https://api.openai.com/v1"
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
LOGGER = core_logging.get_logger("llm_provider")


@dataclass
class LLMResponse:
    content: str


class LLMProvider:
    def generate(self, prompt: str) -> LLMResponse:  # pragma: no cover - interface
        raise NotImplementedError

    def generate_json(self, prompt: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class ToolCallingProvider(LLMProvider):
    """Providers that can exchange a conversation together with callable tools."""

    def chat_with_tools(
        self, messages: List[ChatMessage], tools: List[ToolSchema]
    ) -> ChatResponse:  # pragma: no cover - interface
        raise NotImplementedError


def supports_tool_calling(provider: Any) -> bool:
    return isinstance(provider, ToolCallingProvider)


class MockLLMProvider(ToolCallingProvider):
    def generate(self, prompt: str) -> LLMResponse:
        return LLMResponse(content="{}")

    def generate_json(self, prompt: str) -> str:
        return "{}"

    def chat_with_tools(self, messages: List[ChatMessage], tools: List[ToolSchema]) -> ChatResponse:
        return ChatResponse(message="{}", finish_reason="stop")


class OpenAIProvider(ToolCallingProvider):
    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
        timeout_s: float = 60.0,
        max_retries: int = 0,
        retry_delay_s: float = 1.0,
    ) -> None:
        if not api_key:
            raise ValueError("API key is required")
        if not model:
            raise ValueError("model is required")
        self.api_key = api_key
        self.model = model
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.seed = seed
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s

    def generate(self, prompt: str) -> LLMResponse:
        payload = self._base_payload([{"role": "user", "content": prompt}])
        data = self._post_chat_completion(payload)
        message = _first_choice(data).get("message") or {}
        text = message.get("content") or ""
        if not text:
            raise AIRequestError("AI request failed: empty response content")
        return LLMResponse(content=text)

    def generate_json(self, prompt: str) -> str:
        payload = self._base_payload(
            [
                {"role": "system", "content": JSON_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]
        )
        payload["response_format"] = {"type": "json_object"}
        data = self._post_chat_completion(payload)
        message = _first_choice(data).get("message") or {}
        return message.get("content") or ""

    def chat_with_tools(self, messages: List[ChatMessage], tools: List[ToolSchema]) -> ChatResponse:
        payload = self._base_payload([message_to_wire(message) for message in messages])
        wire_tools = [tool_to_wire(tool) for tool in tools]
        if wire_tools:
            payload["tools"] = wire_tools
        data = self._post_chat_completion(payload)
        return response_from_wire(_first_choice(data))

    def _base_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if self.temperature is not None and _model_supports_temperature(self.model):
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload

    def _post_chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        attempts = self.max_retries + 1
        retried_without_temperature = False
        attempt = 0
        while attempt < attempts:
            request = Request(
                f"{self.base_url}/chat/completions",
                data=json.dumps(payload).encode("utf-8"),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                method="POST",
            )
            try:
                with urlopen(request, timeout=self.timeout_s) as response:
                    body = response.read().decode("utf-8")
                return json.loads(body)
            except HTTPError as exc:
                detail = exc.read().decode("utf-8") if exc.fp else str(exc)
                if (
                    "temperature" in payload
                    and not retried_without_temperature
                    and _is_unsupported_temperature_error(detail)
                ):
                    payload.pop("temperature", None)
                    retried_without_temperature = True
                    continue
                if exc.code in _RETRYABLE_STATUS and attempt < attempts - 1:
                    self._backoff(attempt, detail)
                    attempt += 1
                    continue
                raise AIRequestError(f"AI request failed: HTTP {exc.code}: {detail}") from exc
            except (URLError, TimeoutError, ConnectionError, http.client.HTTPException) as exc:
                if attempt < attempts - 1:
                    self._backoff(attempt, str(exc))
                    attempt += 1
                    continue
                raise AIRequestError(f"AI request failed: connection error: {exc}") from exc
            except json.JSONDecodeError as exc:
                raise AIRequestError(f"AI request failed: invalid response body: {exc}") from exc
        raise AIRequestError(f"AI request failed after {attempts} attempts")

    def _backoff(self, attempt: int, error: str) -> None:
        delay = min(self.retry_delay_s * (2**attempt), 8.0)
        LOGGER.warning(
            "ai_request_retry",
            attempt=attempt + 1,
            max_retries=self.max_retries,
            delay_s=delay,
            error=error,
        )
        time.sleep(delay)


def resolve_provider(
    provider_name: str,
    *,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    seed: Optional[int] = None,
    timeout_s: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> LLMProvider:
    name = (provider_name or "openai").lower()
    if name == "mock":
        return MockLLMProvider()
    if name != "openai":
        raise ValueError(f"unknown LLM provider: {provider_name}")
    if not api_key:
        raise ValueError("API key is required (use --api-key or OPENAI_API_KEY env var)")
    if not model:
        raise ValueError("model is required")
    return OpenAIProvider(
        api_key=api_key,
        model=model,
        base_url=base_url or DEFAULT_BASE_URL,
        temperature=temperature,
        max_tokens=max_tokens,
        seed=seed,
        timeout_s=timeout_s or 60.0,
        max_retries=max_retries or 0,
    )


def message_to_wire(message: ChatMessage) -> Dict[str, Any]:
    wire: Dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.role == ChatRole.tool:
        wire["tool_call_id"] = message.tool_call_id
        wire["content"] = message.content or ""
    if message.tool_calls:
        wire["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments or "{}"},
            }
            for call in message.tool_calls
        ]
    return wire


def tool_to_wire(tool: ToolSchema) -> Dict[str, Any]:
    parameters = tool.parameters
    if parameters is None:
        parameters = {"type": "object", "properties": {}}
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters,
        },
    }


def response_from_wire(choice: Dict[str, Any]) -> ChatResponse:
    message = choice.get("message") or {}
    finish_reason = str(choice.get("finish_reason") or "")
    raw_calls = message.get("tool_calls") or []
    if raw_calls:
        calls: list[ToolCall] = []
        for raw in raw_calls:
            function = raw.get("function") or {}
            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments) if arguments is not None else ""
            calls.append(
                ToolCall(id=str(raw.get("id", "")), name=str(function.get("name", "")), arguments=arguments)
            )
        return ChatResponse(tool_calls=calls, finish_reason=finish_reason)
    return ChatResponse(message=message.get("content") or "", finish_reason=finish_reason)


def _first_choice(data: Dict[str, Any]) -> Dict[str, Any]:
    choices = data.get("choices") or []
    if not choices:
        raise AIRequestError("AI request failed: no response choices from AI model")
    return choices[0]


def _model_supports_temperature(model: str) -> bool:
    normalized = (model or "").strip().lower()
    # GPT-5 chat completions currently reject temperature.
    return not normalized.startswith("gpt-5")


def _is_unsupported_temperature_error(detail: str) -> bool:
    lowered = (detail or "").lower()
    return "unsupported" in lowered and "temperature" in lowered
