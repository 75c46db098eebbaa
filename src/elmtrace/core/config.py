from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


DEFAULT_IGNORED_COMMANDS: tuple[str, ...] = ("ATE0", "ATD0", "ATH1", "ATM0", "ATRV", "STI", "ATS0")
DEFAULT_RESPONSE_TERMINATORS: tuple[str, ...] = ("Initialize(initMode=Default)",)
# Characters of CAN header to drop from each response line, per ATSP protocol.
DEFAULT_HEADER_LENGTHS: dict[str, int] = {"6": 3, "8": 3, "7": 8, "9": 8}

_TOP_LEVEL_KEYS = frozenset(("parser", "eval"))


@dataclass(frozen=True)
class ParserConfig:
    reset_command: str = "ATZ"
    ignored_commands: frozenset[str] = frozenset(DEFAULT_IGNORED_COMMANDS)
    response_terminators: tuple[str, ...] = DEFAULT_RESPONSE_TERMINATORS
    header_lengths: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_HEADER_LENGTHS))


@dataclass(frozen=True)
class ElmtraceConfig:
    parser: ParserConfig = field(default_factory=ParserConfig)
    variable: float = 0


def _str_list(section: str, key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Invalid config: {section}.{key} must be a list of strings")
    return value


def _parse_parser_section(raw: dict[str, Any]) -> ParserConfig:
    defaults = ParserConfig()

    reset_command = raw.get("reset_command", defaults.reset_command)
    if not isinstance(reset_command, str) or not reset_command.strip():
        raise ValueError("Invalid config: parser.reset_command must be a non-empty string")

    ignored = defaults.ignored_commands
    if "ignored_commands" in raw:
        ignored = frozenset(_str_list("parser", "ignored_commands", raw["ignored_commands"]))

    terminators = defaults.response_terminators
    if "response_terminators" in raw:
        terminators = tuple(_str_list("parser", "response_terminators", raw["response_terminators"]))

    header_lengths = dict(defaults.header_lengths)
    if "header_lengths" in raw:
        value = raw["header_lengths"]
        if not isinstance(value, dict):
            raise ValueError("Invalid config: parser.header_lengths must be a mapping")
        header_lengths = {}
        for proto, length in value.items():
            if isinstance(length, bool) or not isinstance(length, int) or length < 0:
                raise ValueError(f"Invalid config: parser.header_lengths[{proto!r}] must be a non-negative integer")
            header_lengths[str(proto).upper()] = length

    unknown = set(raw) - {"reset_command", "ignored_commands", "response_terminators", "header_lengths"}
    if unknown:
        raise ValueError(f"Unknown config key: parser.{sorted(unknown)[0]}")

    return ParserConfig(
        reset_command=reset_command.strip().upper(),
        ignored_commands=ignored,
        response_terminators=terminators,
        header_lengths=header_lengths,
    )


def parse_config(merged: dict[str, Any]) -> ElmtraceConfig:
    for key in merged:
        if key not in _TOP_LEVEL_KEYS:
            raise ValueError(f"Unknown top-level config key: {key}")

    parser_raw = merged.get("parser")
    if parser_raw is None:
        parser_raw = {}
    if not isinstance(parser_raw, dict):
        raise ValueError("Invalid config: parser must be a mapping")

    eval_raw = merged.get("eval")
    if eval_raw is None:
        eval_raw = {}
    if not isinstance(eval_raw, dict):
        raise ValueError("Invalid config: eval must be a mapping")

    for key in eval_raw:
        if key != "variable":
            raise ValueError(f"Unknown config key: eval.{key}")
    variable = eval_raw.get("variable", 0)
    if isinstance(variable, bool) or not isinstance(variable, (int, float)):
        raise ValueError("Invalid config: eval.variable must be a number")

    return ElmtraceConfig(parser=_parse_parser_section(parser_raw), variable=variable)


def load_config_file(path: Path) -> ElmtraceConfig:
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        with path.open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path.name}: {e}") from e
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unsupported config file type: {path.name}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config: {path.name} must contain a mapping")
    return parse_config(data)
