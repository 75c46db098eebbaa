from __future__ import annotations

import json
from pathlib import Path

import pytest

from elmtrace.core.config import (
    DEFAULT_IGNORED_COMMANDS,
    ElmtraceConfig,
    ParserConfig,
    load_config_file,
    parse_config,
)


def test_defaults() -> None:
    cfg = parse_config({})
    assert cfg == ElmtraceConfig()
    assert cfg.parser.reset_command == "ATZ"
    assert cfg.parser.ignored_commands == frozenset(DEFAULT_IGNORED_COMMANDS)
    assert cfg.parser.header_lengths == {"6": 3, "8": 3, "7": 8, "9": 8}
    assert cfg.variable == 0


def test_parser_section_overrides() -> None:
    cfg = parse_config(
        {
            "parser": {
                "reset_command": " atws ",
                "ignored_commands": ["ate0", "ATL0"],
                "response_terminators": ["BUS INIT: ...OK"],
                "header_lengths": {6: 3, "a": 4},
            },
            "eval": {"variable": 2.5},
        }
    )
    assert cfg.parser == ParserConfig(
        reset_command="ATWS",
        ignored_commands=frozenset({"ate0", "ATL0"}),
        response_terminators=("BUS INIT: ...OK",),
        header_lengths={"6": 3, "A": 4},
    )
    assert cfg.variable == 2.5


@pytest.mark.parametrize(
    "merged, message",
    [
        ({"target": {}}, "Unknown top-level config key: target"),
        ({"parser": []}, "parser must be a mapping"),
        ({"eval": "x"}, "eval must be a mapping"),
        ({"eval": {"variable": "1"}}, "eval.variable must be a number"),
        ({"eval": {"variable": True}}, "eval.variable must be a number"),
        ({"eval": {"v": 1}}, "Unknown config key: eval.v"),
        ({"parser": {"reset_command": ""}}, "parser.reset_command"),
        ({"parser": {"ignored_commands": "ATE0"}}, "parser.ignored_commands"),
        ({"parser": {"header_lengths": {"6": -1}}}, "parser.header_lengths"),
        ({"parser": {"header_lengths": [3]}}, "parser.header_lengths must be a mapping"),
        ({"parser": {"protocol": "6"}}, "Unknown config key: parser.protocol"),
    ],
)
def test_invalid_config(merged: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message.replace(".", r"\.").replace("[", r"\[")):
        parse_config(merged)


def test_load_yaml_and_json(tmp_path: Path) -> None:
    yaml_path = tmp_path / "elmtrace.yaml"
    yaml_path.write_text("parser:\n  ignored_commands: [ATE0]\neval:\n  variable: 3\n", encoding="utf-8")
    cfg = load_config_file(yaml_path)
    assert cfg.parser.ignored_commands == frozenset({"ATE0"})
    assert cfg.variable == 3

    json_path = tmp_path / "elmtrace.json"
    json_path.write_text(json.dumps({"parser": {"reset_command": "ATD"}}), encoding="utf-8")
    assert load_config_file(json_path).parser.reset_command == "ATD"

    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert load_config_file(empty) == ElmtraceConfig()


def test_load_rejects_bad_files(tmp_path: Path) -> None:
    bad_yaml = tmp_path / "bad.yaml"
    bad_yaml.write_text("parser: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config_file(bad_yaml)

    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must contain a mapping"):
        load_config_file(not_mapping)

    toml = tmp_path / "cfg.toml"
    toml.write_text("", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported config file type"):
        load_config_file(toml)


def test_shipped_config_matches_defaults() -> None:
    path = Path(__file__).resolve().parents[3] / "configs" / "elmtrace.yaml"
    assert load_config_file(path) == ElmtraceConfig()
