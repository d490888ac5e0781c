from __future__ import annotations

import json
from typing import Any

JSON_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates structured JSON output based on the "
    "provided instructions. Always respond with valid JSON only, no additional text."
)

STRICT_JSON_FOLLOWUP = "Please format your response as valid JSON matching the template schema."

TOOL_ERROR_PREFIX = "Error executing tool: "


def _schema_text(schema: Any) -> str:
    if isinstance(schema, str):
        return schema
    if isinstance(schema, bytes):
        return schema.decode("utf-8")
    return json.dumps(schema, ensure_ascii=False, indent=2)


def generation_prompt(source_content: str, template_prompt: str, schema: Any) -> str:
    return (
        "You are a technical documentation generator. Your task is to generate structured "
        "JSON content based on the provided source documents and template requirements.\n\n"
        "## Template Instructions\n"
        f"{template_prompt}\n\n"
        "## JSON Schema\n"
        "Your response MUST conform to the following JSON schema:\n"
        f"```json\n{_schema_text(schema)}\n```\n\n"
        "## Source Documents\n"
        "Use the following source content to generate the JSON fields:\n"
        f"```\n{source_content}\n```\n\n"
        "## Instructions\n"
        "1. Analyze the source documents carefully\n"
        "2. Generate JSON that matches the schema exactly\n"
        "3. Use information from the source documents to populate the fields\n"
        "4. Ensure all required fields are present\n"
        "5. Return ONLY valid JSON, no additional text or markdown formatting\n"
    )


def repair_prompt(
    original_prompt: str, invalid_json: str, validation_error: str, schema: Any
) -> str:
    return (
        "The previously generated JSON failed validation. "
        "Please fix the issues and generate valid JSON.\n\n"
        "## Validation Error\n"
        "The following validation error occurred:\n"
        f"```\n{validation_error}\n```\n\n"
        "## Invalid JSON\n"
        "This was the invalid JSON that was generated:\n"
        f"```json\n{invalid_json}\n```\n\n"
        "## Required Schema\n"
        "The JSON MUST conform to this schema:\n"
        f"```json\n{_schema_text(schema)}\n```\n\n"
        "## Original Context\n"
        f"{original_prompt}\n\n"
        "## Repair Instructions\n"
        "1. Identify the validation error in the JSON\n"
        "2. Fix the specific issue mentioned in the error\n"
        "3. Ensure the repaired JSON matches the schema exactly\n"
        "4. Preserve all valid content from the original JSON\n"
        "5. Return ONLY the repaired JSON, no additional text\n"
    )


def analysis_user_prompt(initial_user_prompt: str, source_path: str) -> str:
    if not source_path:
        return initial_user_prompt
    return f"{initial_user_prompt}\n\nRepository path: {source_path}"


def analysis_context_prompt(system_prompt: str, user_prompt: str) -> str:
    return f"{system_prompt}\n\n{user_prompt}"


def estimate_tokens(prompt: str) -> int:
    # roughly four characters per token
    return len(prompt) // 4
