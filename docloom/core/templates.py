from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from . import logging as core_logging
from .errors import TemplateError
from .models import AnalysisPrompts, DocumentTemplate

LOGGER = core_logging.get_logger("templates")

_ARCHITECTURE_VISION_SYSTEM = (
    "You are an expert software architect analyzing a codebase to create an Architecture "
    "Vision document.\n"
    "Your goal is to understand the system's structure, design patterns, and architectural "
    "decisions.\n"
    "Use the available tools to explore the repository systematically, starting with "
    "high-level structure and drilling down into details as needed."
)

_ARCHITECTURE_VISION_USER = """Please analyze this repository to create a comprehensive Architecture Vision document. Follow these steps:
1. First, use tools to understand the overall repository structure
2. Identify key architectural patterns and design decisions
3. Analyze the technology stack and dependencies
4. Examine the system's components and their relationships
5. Generate a complete Architecture Vision document according to the schema

Focus on:
- System purpose and business goals
- Key architectural decisions and rationale
- Component structure and interactions
- Technology choices and trade-offs
- Quality attributes and constraints"""

_TECHNICAL_DEBT_SYSTEM = (
    "You are a senior engineer conducting a technical debt assessment.\n"
    "Your role is to identify areas of technical debt, code quality issues, and improvement "
    "opportunities.\n"
    "Use the available tools to analyze code quality, identify anti-patterns, and assess "
    "maintainability."
)

_TECHNICAL_DEBT_USER = """Please analyze this repository to create a Technical Debt Summary. Follow these steps:
1. Examine the codebase structure for complexity and organization issues
2. Identify duplicated code, long methods, and large classes
3. Check for outdated dependencies and security vulnerabilities
4. Analyze test coverage and quality
5. Generate a prioritized technical debt report

Focus on:
- Code complexity and maintainability issues
- Missing or inadequate tests
- Outdated or vulnerable dependencies
- Architectural anti-patterns
- Recommended refactoring priorities"""

_REFERENCE_ARCH_SYSTEM = (
    "You are a principal architect creating a reference architecture document.\n"
    "Your goal is to extract reusable patterns, best practices, and architectural "
    "guidelines from the codebase.\n"
    "Use the available tools to identify exemplary implementations and patterns worth "
    "documenting."
)

_REFERENCE_ARCH_USER = """Please analyze this repository to create a Reference Architecture document. Follow these steps:
1. Identify and document architectural patterns used
2. Extract reusable components and frameworks
3. Document best practices and conventions
4. Analyze cross-cutting concerns (security, logging, error handling)
5. Generate a comprehensive reference architecture guide

Focus on:
- Reusable architectural patterns
- Component templates and frameworks
- Development guidelines and standards
- Cross-cutting concern implementations
- Example implementations and usage patterns"""


def _html_page(title: str, fields: List[str]) -> str:
    markers = "\n".join(f'<!-- data-field="{field}" -->' for field in fields)
    return f"<!DOCTYPE html>\n<html>\n<head><title>{title}</title></head>\n<body>\n{markers}\n</body>\n</html>"


def _object_schema(root: str, properties: Dict[str, Dict[str, str]]) -> Dict[str, object]:
    return {
        "type": "object",
        "properties": {root: {"type": "object", "properties": properties}},
    }


DEFAULT_TEMPLATES: List[DocumentTemplate] = [
    DocumentTemplate(
        name="architecture-vision",
        description="Architecture Vision document template",
        prompt="Generate an architecture vision document based on the provided sources.",
        schema_def=_object_schema(
            "document", {"title": {"type": "string"}, "content": {"type": "string"}}
        ),
        html=_html_page("Architecture Vision", ["document.title", "document.content"]),
        analysis=AnalysisPrompts(
            system_prompt=_ARCHITECTURE_VISION_SYSTEM,
            initial_user_prompt=_ARCHITECTURE_VISION_USER,
        ),
    ),
    DocumentTemplate(
        name="technical-debt-summary",
        description="Technical Debt Summary template",
        prompt="Analyze technical debt from the provided sources.",
        schema_def=_object_schema(
            "summary", {"title": {"type": "string"}, "items": {"type": "array"}}
        ),
        html=_html_page("Technical Debt Summary", ["summary.title", "summary.items"]),
        analysis=AnalysisPrompts(
            system_prompt=_TECHNICAL_DEBT_SYSTEM,
            initial_user_prompt=_TECHNICAL_DEBT_USER,
        ),
    ),
    DocumentTemplate(
        name="reference-architecture",
        description="Reference Architecture template",
        prompt="Create a reference architecture based on the provided sources.",
        schema_def=_object_schema(
            "architecture", {"name": {"type": "string"}, "components": {"type": "array"}}
        ),
        html=_html_page("Reference Architecture", ["architecture.name", "architecture.components"]),
        analysis=AnalysisPrompts(
            system_prompt=_REFERENCE_ARCH_SYSTEM,
            initial_user_prompt=_REFERENCE_ARCH_USER,
        ),
    ),
]


class TemplateRegistry:
    def __init__(self, load_defaults: bool = True) -> None:
        self._templates: Dict[str, DocumentTemplate] = {}
        if load_defaults:
            for template in DEFAULT_TEMPLATES:
                self._templates[template.name] = template

    def register(self, template: DocumentTemplate, replace: bool = False) -> None:
        if template.name in self._templates and not replace:
            raise TemplateError(f"template '{template.name}' already exists")
        self._templates[template.name] = template

    def get(self, name: str) -> DocumentTemplate:
        template = self._templates.get(name)
        if template is None:
            raise TemplateError(f"template '{name}' not found")
        return template

    def list(self) -> List[DocumentTemplate]:
        return [self._templates[name] for name in sorted(self._templates)]

    def load_from_directory(self, directory: str | Path) -> int:
        """Load every `<dir>/<name>/template.json`, overriding built-ins of the same name."""
        root = Path(directory)
        if not root.is_dir():
            raise TemplateError(f"template directory not found: {root}")
        loaded = 0
        for manifest in sorted(root.glob("*/template.json")):
            template = _load_template(manifest)
            self.register(template, replace=True)
            loaded += 1
            LOGGER.debug("template_loaded", name=template.name, path=str(manifest))
        return loaded


def _load_template(manifest: Path) -> DocumentTemplate:
    template_dir = manifest.parent
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise TemplateError(f"failed to read template {manifest}: {exc}") from exc
    if not isinstance(data, dict):
        raise TemplateError(f"template {manifest} must contain a JSON object")
    data.setdefault("name", template_dir.name)
    html_path = template_dir / f"{data['name']}.html"
    if "html" not in data and html_path.is_file():
        data["html"] = html_path.read_text(encoding="utf-8")
    try:
        return DocumentTemplate.model_validate(data)
    except ValidationError as exc:
        raise TemplateError(f"invalid template {manifest}: {exc}") from exc
