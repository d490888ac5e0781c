from __future__ import annotations

import json
from pathlib import Path

import pytest

from docloom.core.errors import TemplateError
from docloom.core.models import DocumentTemplate
from docloom.core.templates import TemplateRegistry


def test_builtin_templates_support_agent_analysis() -> None:
    templates = TemplateRegistry()
    names = [template.name for template in templates.list()]
    assert names == ["architecture-vision", "reference-architecture", "technical-debt-summary"]
    for template in templates.list():
        assert template.analysis is not None
        assert template.analysis.system_prompt
        assert "data-field" in template.html


def test_unknown_template() -> None:
    with pytest.raises(TemplateError, match="template 'nope' not found"):
        TemplateRegistry().get("nope")


def test_register_refuses_duplicates_unless_replacing() -> None:
    templates = TemplateRegistry(load_defaults=False)
    templates.register(DocumentTemplate(name="brief"))
    with pytest.raises(TemplateError, match="already exists"):
        templates.register(DocumentTemplate(name="brief"))
    templates.register(DocumentTemplate(name="brief", description="v2"), replace=True)
    assert templates.get("brief").description == "v2"


def test_load_from_directory_overrides_builtin(tmp_path: Path) -> None:
    template_dir = tmp_path / "architecture-vision"
    template_dir.mkdir()
    (template_dir / "template.json").write_text(
        json.dumps(
            {
                "description": "Custom vision",
                "prompt": "Write it.",
                "schema": {"type": "object", "required": ["vision"]},
                "analysis": {"system_prompt": "sys", "initial_user_prompt": "go"},
            }
        ),
        encoding="utf-8",
    )
    (template_dir / "architecture-vision.html").write_text('<p><!-- data-field="vision" --></p>', encoding="utf-8")

    templates = TemplateRegistry()
    assert templates.load_from_directory(tmp_path) == 1

    template = templates.get("architecture-vision")
    assert template.description == "Custom vision"
    assert template.schema_def["required"] == ["vision"]
    assert template.html == '<p><!-- data-field="vision" --></p>'
    assert template.analysis is not None and template.analysis.initial_user_prompt == "go"


def test_load_from_directory_errors(tmp_path: Path) -> None:
    with pytest.raises(TemplateError, match="template directory not found"):
        TemplateRegistry().load_from_directory(tmp_path / "missing")

    broken = tmp_path / "broken"
    broken.mkdir()
    (broken / "template.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(TemplateError, match="failed to read template"):
        TemplateRegistry().load_from_directory(tmp_path)
