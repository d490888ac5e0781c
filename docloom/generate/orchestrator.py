from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from docloom.agents.executor import AgentExecutor
from docloom.agents.registry import AgentRegistry
from docloom.core import logging as core_logging
from docloom.core.errors import (
    GenerationError,
    RepairExhaustedError,
    SchemaValidationError,
    TemplateError,
    ToolCallingUnsupportedError,
)
from docloom.core.llm_provider import LLMProvider, supports_tool_calling
from docloom.core.models import (
    AnalysisOptions,
    DocumentTemplate,
    GenerateOptions,
    GenerationResult,
)
from docloom.core.prompts import (
    analysis_context_prompt,
    analysis_user_prompt,
    estimate_tokens,
    generation_prompt,
    repair_prompt,
)
from docloom.core.templates import TemplateRegistry
from docloom.core.validation import SchemaValidator, parse_json_object

from .analysis import AnalysisLoop
from .ingest import ingest_sources
from .render import render_html

LOGGER = core_logging.get_logger("orchestrator")

PROMPT_PREVIEW_CHARS = 1000


class Orchestrator:
    """Turns sources, or an agent-driven analysis, into validated JSON and HTML output.

    Nothing is written to disk until the model output has passed schema
    validation, so a failed generation never leaves a partial document behind.
    """

    def __init__(
        self,
        provider: LLMProvider,
        templates: Optional[TemplateRegistry] = None,
        *,
        validator: Optional[SchemaValidator] = None,
        agent_registry: Optional[AgentRegistry] = None,
        agent_executor: Optional[AgentExecutor] = None,
        max_turns: int = 10,
    ) -> None:
        if agent_executor is not None and not supports_tool_calling(provider):
            raise ToolCallingUnsupportedError(
                f"provider {type(provider).__name__} does not support tool calling"
            )
        self.provider = provider
        self.templates = templates or TemplateRegistry()
        self.validator = validator or SchemaValidator()
        self.agent_registry = agent_registry
        self.agent_executor = agent_executor
        self.max_turns = max_turns

    def generate(self, options: GenerateOptions) -> GenerationResult:
        _validate_options(options, require_sources=True)
        self._check_overwrite(options)
        template = self.templates.get(options.template_type)

        LOGGER.info("ingesting_sources", sources=options.sources)
        source_content = ingest_sources(options.sources)
        prompt = generation_prompt(source_content, template.prompt, template.schema_def)

        if options.dry_run:
            return _dry_run_result(options, prompt)

        started = time.monotonic()
        LOGGER.info("generation_started", template=template.name)
        candidate = self.provider.generate_json(prompt)
        LOGGER.info(
            "ai_response_received",
            duration_ms=int((time.monotonic() - started) * 1000),
            response_bytes=len(candidate),
        )
        final_json, attempts = self._validate_and_repair(
            prompt, candidate, template.schema_def, options.max_repairs
        )
        return self._write_output(options, template, final_json, attempts)

    def generate_with_agent(
        self,
        options: GenerateOptions,
        agent_name: str,
        agent_params: Optional[Mapping[str, str]] = None,
    ) -> GenerationResult:
        if self.agent_registry is None or self.agent_executor is None:
            raise GenerationError("agent-based generation requires an agent registry and executor")
        _validate_options(options, require_sources=False)
        self._check_overwrite(options)
        template = self.templates.get(options.template_type)
        if template.analysis is None or not template.analysis.system_prompt:
            raise TemplateError(
                f"template '{options.template_type}' does not support agent-based analysis"
            )

        source_path = options.sources[0] if options.sources else ""
        context_prompt = analysis_context_prompt(
            template.analysis.system_prompt,
            analysis_user_prompt(template.analysis.initial_user_prompt, source_path),
        )
        if options.dry_run:
            return _dry_run_result(options, context_prompt)

        loop = AnalysisLoop(self.provider, self.agent_registry, self.agent_executor)
        candidate = loop.run(
            AnalysisOptions(
                agent_name=agent_name,
                template=template,
                source_path=source_path,
                max_turns=self.max_turns,
                agent_params=dict(agent_params or {}),
            )
        )
        final_json, attempts = self._validate_and_repair(
            context_prompt, candidate, template.schema_def, options.max_repairs
        )
        return self._write_output(options, template, final_json, attempts)

    def _validate_and_repair(
        self, original_prompt: str, candidate: str, schema: Dict[str, Any], max_repairs: int
    ) -> Tuple[str, int]:
        """Validate candidate JSON, re-prompting with the error up to max_repairs times."""
        attempt = 1
        while True:
            try:
                self.validator.validate(candidate, schema)
            except SchemaValidationError as exc:
                LOGGER.warning("validation_failed", attempt=attempt, error=exc.detail)
                if attempt > max_repairs:
                    raise RepairExhaustedError(attempt, exc.detail) from exc
                attempt += 1
                LOGGER.info("repair_attempt", attempt=attempt, max_attempts=max_repairs + 1)
                candidate = self.provider.generate_json(
                    repair_prompt(original_prompt, candidate, exc.detail, schema)
                )
                continue
            LOGGER.info("validation_succeeded", attempt=attempt)
            return candidate, attempt

    def _check_overwrite(self, options: GenerateOptions) -> None:
        if options.dry_run or options.force:
            return
        if Path(options.output_file).exists():
            raise GenerationError(
                f"output file {options.output_file} already exists (use --force to overwrite)"
            )

    def _write_output(
        self, options: GenerateOptions, template: DocumentTemplate, final_json: str, attempts: int
    ) -> GenerationResult:
        fields = parse_json_object(final_json)
        html = render_html(template.html, fields)
        output_path = Path(options.output_file)
        json_path = sidecar_path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _write_together({output_path: html, json_path: final_json})
        LOGGER.info("document_written", html_file=str(output_path), json_file=str(json_path))
        return GenerationResult(
            output_file=str(output_path), json_file=str(json_path), attempts=attempts
        )


def _write_together(files: Dict[Path, str]) -> None:
    """Stage every file beside its target, then move them all into place."""
    staged: Dict[Path, Path] = {}
    try:
        for target, content in files.items():
            temp = target.with_name(f".{target.name}.tmp")
            temp.write_text(content, encoding="utf-8")
            staged[target] = temp
        for target, temp in staged.items():
            os.replace(temp, target)
    except OSError as exc:
        for temp in staged.values():
            temp.unlink(missing_ok=True)
        raise GenerationError(f"failed to write output: {exc}") from exc


def sidecar_path(output_path: Path) -> Path:
    name = output_path.name
    if name.endswith(".html"):
        name = name[: -len(".html")]
    return output_path.with_name(f"{name}.json")


def _validate_options(options: GenerateOptions, require_sources: bool) -> None:
    if not options.template_type:
        raise GenerationError("invalid options: template type is required")
    if require_sources and not options.sources:
        raise GenerationError("invalid options: at least one source is required")
    if not options.output_file:
        raise GenerationError("invalid options: output file is required")
    if options.max_repairs < 0:
        raise GenerationError("invalid options: max repairs must be non-negative")


def _dry_run_result(options: GenerateOptions, prompt: str) -> GenerationResult:
    preview = prompt
    if len(preview) > PROMPT_PREVIEW_CHARS:
        preview = preview[:PROMPT_PREVIEW_CHARS] + "..."
    LOGGER.info("dry_run", template=options.template_type, output=options.output_file)
    return GenerationResult(
        output_file=options.output_file,
        dry_run=True,
        prompt_preview=preview,
        estimated_tokens=estimate_tokens(prompt),
    )


def dump_schema(template: DocumentTemplate) -> str:
    return json.dumps(template.schema_def, indent=2)
