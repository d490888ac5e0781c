"""Command line entrypoint for docloom.

    docloom agents list
    docloom agents describe <name>
    docloom templates list
    docloom cache clean [--max-age-hours N]
    docloom generate --type T --source S [--source S ...] --out O [--agent A --agent-param k=v]
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from docloom.agents.cache import ArtifactCache
from docloom.agents.executor import AgentExecutor
from docloom.agents.registry import AgentRegistry
from docloom.core import logging as core_logging
from docloom.core.config import DocloomConfig, load_config
from docloom.core.errors import AgentNotFoundError, DocloomError, GenerationError
from docloom.core.llm_provider import LLMProvider, MockLLMProvider, resolve_provider
from docloom.core.models import GenerateOptions, GenerationResult, RunOptions
from docloom.core.templates import TemplateRegistry
from docloom.generate.orchestrator import Orchestrator, dump_schema


def _parse_agent_params(values: Optional[List[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise GenerationError(f"invalid agent parameter {item!r} (expected key=value)")
        params[key.strip()] = value
    return params


def _build_registry(config: DocloomConfig, extra_paths: Optional[List[str]]) -> AgentRegistry:
    registry = AgentRegistry(config.agent_paths)
    for path in extra_paths or []:
        registry.add_search_path(path)
    registry.discover()
    return registry


def _build_templates(config: DocloomConfig) -> TemplateRegistry:
    templates = TemplateRegistry()
    if config.template_dir and Path(config.template_dir).is_dir():
        templates.load_from_directory(config.template_dir)
    return templates


def _build_provider(config: DocloomConfig) -> LLMProvider:
    if config.dry_run:
        return MockLLMProvider()
    try:
        return resolve_provider(
            config.llm_provider,
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            seed=config.seed,
            timeout_s=config.timeout_s,
            max_retries=config.max_retries,
        )
    except ValueError as exc:
        raise GenerationError(str(exc)) from exc


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "model": getattr(args, "model", None),
        "base_url": getattr(args, "base_url", None),
        "api_key": getattr(args, "api_key", None),
        "temperature": getattr(args, "temperature", None),
        "seed": getattr(args, "seed", None),
        "max_retries": getattr(args, "retries", None),
        "max_turns": getattr(args, "max_turns", None),
        "max_repairs": getattr(args, "max_repairs", None),
        "template_dir": getattr(args, "template_dir", None),
    }
    for flag in ("force", "verbose", "dry_run"):
        if getattr(args, flag, False):
            overrides[flag] = True
    return overrides


def cmd_agents_list(args: argparse.Namespace, config: DocloomConfig) -> int:
    registry = _build_registry(config, args.agent_path)
    definitions = registry.list()
    if not definitions:
        print("No agents found.")
        return 0
    for definition in definitions:
        kind = "tools" if definition.is_toolkit else "runner"
        print(f"{definition.name:<30} {kind:<7} {definition.description}")
    return 0


def cmd_agents_describe(args: argparse.Namespace, config: DocloomConfig) -> int:
    registry = _build_registry(config, args.agent_path)
    definition = registry.get(args.name)
    if definition is None:
        raise AgentNotFoundError(args.name)
    print(f"Name:        {definition.name}")
    print(f"Description: {definition.description}")
    print(f"API version: {definition.api_version}")
    if definition.runner is not None:
        print(f"Runner:      {definition.runner.command} {' '.join(definition.runner.args)}".rstrip())
    if definition.tools:
        print("Tools:")
        for tool in definition.tools:
            print(f"  - {tool.name}: {tool.description}")
            print(f"    command: {tool.command} {' '.join(tool.args)}".rstrip())
    if definition.parameters:
        print("Parameters:")
        for parameter in definition.parameters:
            required = " (required)" if parameter.required else ""
            default = parameter.default_as_env()
            default_text = f" [default: {default}]" if default is not None else ""
            print(
                f"  - {parameter.name} ({parameter.type.value}){required}{default_text}: "
                f"{parameter.description}"
            )
    return 0


def cmd_templates_list(args: argparse.Namespace, config: DocloomConfig) -> int:
    for template in _build_templates(config).list():
        analysis = " [analysis]" if template.analysis is not None else ""
        print(f"{template.name:<30} {template.description}{analysis}")
    return 0


def cmd_cache_clean(args: argparse.Namespace, config: DocloomConfig) -> int:
    cache = ArtifactCache(args.cache_dir)
    removed = cache.clean(timedelta(hours=args.max_age_hours))
    print(f"Removed {len(removed)} cache director{'y' if len(removed) == 1 else 'ies'}.")
    return 0


def cmd_generate(args: argparse.Namespace, config: DocloomConfig) -> int:
    agent_params = _parse_agent_params(args.agent_param)
    options = GenerateOptions(
        template_type=args.type,
        sources=list(args.source or []),
        output_file=args.out,
        dry_run=config.dry_run,
        force=config.force,
        max_repairs=config.max_repairs,
    )
    templates = _build_templates(config)
    provider = _build_provider(config)

    if not args.agent:
        result = Orchestrator(provider, templates).generate(options)
        _print_result(result, templates, options)
        return 0

    registry = _build_registry(config, args.agent_path)
    definition = registry.get(args.agent)
    if definition is None:
        raise AgentNotFoundError(args.agent)
    executor = AgentExecutor(registry, ArtifactCache(), timeout_s=config.tool_timeout_s)

    if definition.is_toolkit:
        orchestrator = Orchestrator(
            provider,
            templates,
            agent_registry=registry,
            agent_executor=executor,
            max_turns=config.max_turns,
        )
        result = orchestrator.generate_with_agent(options, args.agent, agent_params)
        _print_result(result, templates, options)
        return 0

    if not options.sources:
        raise GenerationError("invalid options: at least one source is required")
    run_result = executor.run(
        RunOptions(agent_name=args.agent, source_path=options.sources[0], parameters=agent_params)
    )
    executor.validate_output(run_result.output_path)
    options = options.model_copy(update={"sources": [run_result.output_path]})
    result = Orchestrator(provider, templates).generate(options)
    _print_result(result, templates, options)
    return 0


def _print_result(
    result: GenerationResult, templates: TemplateRegistry, options: GenerateOptions
) -> None:
    if result.dry_run:
        print("=== DRY RUN MODE ===")
        print(f"Template: {options.template_type}")
        print(f"Sources: {', '.join(options.sources)}")
        print(f"Output: {result.output_file}")
        print(f"Estimated tokens: {result.estimated_tokens}")
        print("\n=== PROMPT PREVIEW ===")
        print(result.prompt_preview)
        print("\n=== SCHEMA ===")
        print(dump_schema(templates.get(options.template_type)))
        return
    print(f"Generated {result.output_file} (data: {result.json_file}, attempts: {result.attempts})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docloom", description="AI-assisted document generation")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    agents = commands.add_parser("agents", help="Inspect research agents")
    agent_commands = agents.add_subparsers(dest="agents_command", required=True)
    agents_list = agent_commands.add_parser("list", help="List discovered agents")
    agents_list.add_argument("--agent-path", action="append", help="Extra agent search path")
    agents_list.set_defaults(handler=cmd_agents_list)
    agents_describe = agent_commands.add_parser("describe", help="Show one agent in detail")
    agents_describe.add_argument("name")
    agents_describe.add_argument("--agent-path", action="append", help="Extra agent search path")
    agents_describe.set_defaults(handler=cmd_agents_describe)

    templates = commands.add_parser("templates", help="Inspect document templates")
    template_commands = templates.add_subparsers(dest="templates_command", required=True)
    templates_list = template_commands.add_parser("list", help="List available templates")
    templates_list.add_argument("--template-dir", help="Directory with extra templates")
    templates_list.set_defaults(handler=cmd_templates_list)

    cache = commands.add_parser("cache", help="Manage the agent artifact cache")
    cache_commands = cache.add_subparsers(dest="cache_command", required=True)
    cache_clean = cache_commands.add_parser("clean", help="Remove old run directories")
    cache_clean.add_argument("--max-age-hours", type=float, default=24.0)
    cache_clean.add_argument("--cache-dir", help=argparse.SUPPRESS)
    cache_clean.set_defaults(handler=cmd_cache_clean)

    generate = commands.add_parser("generate", help="Generate a document")
    generate.add_argument("--type", "-t", required=True, help="Template name")
    generate.add_argument("--source", "-s", action="append", help="Source file or directory")
    generate.add_argument("--out", "-o", required=True, help="Output HTML file")
    generate.add_argument("--agent", help="Research agent to analyse the source with")
    generate.add_argument("--agent-param", action="append", help="Agent parameter as key=value")
    generate.add_argument("--agent-path", action="append", help="Extra agent search path")
    generate.add_argument("--model")
    generate.add_argument("--base-url")
    generate.add_argument("--api-key")
    generate.add_argument("--temperature", type=float)
    generate.add_argument("--seed", type=int)
    generate.add_argument("--retries", type=int)
    generate.add_argument("--max-turns", type=int)
    generate.add_argument("--max-repairs", type=int)
    generate.add_argument("--template-dir")
    generate.add_argument("--dry-run", action="store_true")
    generate.add_argument("--force", action="store_true")
    generate.set_defaults(handler=cmd_generate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config, _config_overrides(args))
        core_logging.configure_logging(
            "docloom", logging.DEBUG if config.verbose else logging.WARNING
        )
        return args.handler(args, config)
    except DocloomError as exc:
        print(f"error: {exc.detail}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
