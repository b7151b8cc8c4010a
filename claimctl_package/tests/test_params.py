from __future__ import annotations

import json
from pathlib import Path

import pytest

from claimctl.errors import ConfigError
from claimctl.params import (
    ParameterFile,
    TemplateParameters,
    merge_params,
    parse_file,
    parse_inline_params,
    resolve,
)


def _write(path: Path, text: str) -> str:
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_single_template_shape_normalizes_to_one_entry(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "params.yaml",
        "template: volumeclaim-simple\nparameters:\n  name: test-volume\n  storage: 10Gi\n",
    )

    param_file = parse_file(path)

    assert param_file.templates == [
        TemplateParameters("volumeclaim-simple", {"name": "test-volume", "storage": "10Gi"})
    ]


def test_multi_template_shape_keeps_file_order(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "params.yml",
        "templates:\n"
        "  - name: postgres-db\n"
        "    parameters: {name: orders, replicas: 2, ha: true}\n"
        "  - name: volumeclaim-simple\n"
        "    parameters: {name: data}\n",
    )

    entries = parse_file(path).templates

    assert [entry.template_name for entry in entries] == ["postgres-db", "volumeclaim-simple"]
    # Scalar types from the file pass through untouched.
    assert entries[0].parameters == {"name": "orders", "replicas": 2, "ha": True}


def test_json_file_and_unknown_extension(tmp_path: Path) -> None:
    data = {"template": "volumeclaim-simple", "parameters": {"name": "json-volume"}}
    json_path = _write(tmp_path / "params.json", json.dumps(data))
    other_path = _write(tmp_path / "params.txt", json.dumps(data))

    assert parse_file(json_path).templates[0].parameters == {"name": "json-volume"}
    assert parse_file(other_path).templates[0].template_name == "volumeclaim-simple"


def test_normalize_does_not_override_existing_templates() -> None:
    param_file = ParameterFile(
        template="ignored",
        parameters={"name": "x"},
        templates=[TemplateParameters("kept", {})],
    ).normalize()

    assert [entry.template_name for entry in param_file.templates] == ["kept"]


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "parameters: [1, 2]\n",
        "templates: {name: x}\n",
        "templates:\n  - parameters: {name: x}\n",
        "key: [unclosed\n",
    ],
)
def test_invalid_parameter_files_raise_config_error(tmp_path: Path, text: str) -> None:
    path = _write(tmp_path / "params.yaml", text)

    with pytest.raises(ConfigError):
        parse_file(path)


def test_missing_parameter_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Error reading params file"):
        parse_file(tmp_path / "missing.yaml")


def test_inline_params_split_on_first_equals() -> None:
    params = parse_inline_params(["name=test", "selector=app=web", "empty="])

    assert params == {"name": "test", "selector": "app=web", "empty": ""}


@pytest.mark.parametrize("value", ["novalue", "=orphan"])
def test_inline_params_reject_malformed_values(value: str) -> None:
    with pytest.raises(ConfigError):
        parse_inline_params([value])


def test_merge_inline_wins_and_is_idempotent() -> None:
    file_params = {"name": "from-file", "storage": "5Gi"}
    inline = {"storage": "10Gi"}

    once = merge_params(file_params, inline)
    twice = merge_params(once, inline)

    assert once == {"name": "from-file", "storage": "10Gi"}
    assert twice == once
    assert file_params == {"name": "from-file", "storage": "5Gi"}


def test_resolve_requires_input_when_not_interactive() -> None:
    with pytest.raises(ConfigError, match="non-interactive mode requires"):
        resolve()


def test_resolve_interactive_may_start_empty() -> None:
    assert resolve(interactive=True) == []


def test_resolve_merges_inline_into_named_templates(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "params.yaml",
        "templates:\n"
        "  - name: volumeclaim-simple\n"
        "    parameters: {name: data, storage: 5Gi}\n"
        "  - name: postgres-db\n"
        "    parameters: {name: orders}\n",
    )

    entries = resolve(str(path), ["volumeclaim-simple", "redis-cache"], ["storage=20Gi"])

    assert [(e.template_name, e.parameters) for e in entries] == [
        ("volumeclaim-simple", {"name": "data", "storage": "20Gi"}),
        ("postgres-db", {"name": "orders"}),
        ("redis-cache", {"storage": "20Gi"}),
    ]


def test_resolve_without_names_applies_inline_to_every_entry(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "params.yaml",
        "templates:\n"
        "  - name: a\n"
        "    parameters: {name: one}\n"
        "  - name: b\n"
        "    parameters: {name: two}\n",
    )

    entries = resolve(str(path), inline=["namespace=prod"])

    assert [e.parameters["namespace"] for e in entries] == ["prod", "prod"]


def test_resolve_rejects_file_without_templates(tmp_path: Path) -> None:
    path = _write(tmp_path / "params.yaml", "parameters: {name: orphan}\n")

    with pytest.raises(ConfigError, match="No templates to render"):
        resolve(str(path))
