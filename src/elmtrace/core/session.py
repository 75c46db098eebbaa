"""
ELM327 session transcript parser.

Rebuilds the command list, the PID request/response pairs and the active
OBD protocol from a raw terminal capture. Only the part after the last
reset command is considered. Lines that do not fit any pattern are skipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from elmtrace.core.config import DEFAULT_HEADER_LENGTHS, ParserConfig
from elmtrace.core.errors import NoPayloadError, TranscriptReadError


logger = logging.getLogger(__name__)

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")
_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_COMMAND_PREFIXES = (">AT", ">ST", ">VT")
_SET_PROTOCOL_PREFIX = ">ATSP"


@dataclass(frozen=True)
class ParsedCommand:
    command: str
    response: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "response": list(self.response)}


@dataclass(frozen=True)
class PIDRecord:
    request: str
    response: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"request": self.request, "response": list(self.response)}


@dataclass
class SessionState:
    """
    Result of one transcript parse.

    pid_responses keeps the first-seen order of request ids; a repeated
    request replaces the stored response in place.
    """

    last_protocol: str | None = None
    commands: list[ParsedCommand] = field(default_factory=list)
    pid_responses: dict[str, tuple[str, ...]] = field(default_factory=dict)
    second_to_last_pid: PIDRecord | None = None

    def all_pid_responses(self) -> list[PIDRecord]:
        return [PIDRecord(request=pid, response=resp) for pid, resp in self.pid_responses.items()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_protocol": self.last_protocol,
            "second_to_last_pid": self.second_to_last_pid.to_dict() if self.second_to_last_pid else None,
            "commands": [c.to_dict() for c in self.commands],
            "pid_responses": [{"pid": pid, "response": list(resp)} for pid, resp in self.pid_responses.items()],
        }


def split_lines(text: str) -> list[str]:
    return _LINE_SPLIT_RE.split(text)


def is_hex(text: str) -> bool:
    return _HEX_RE.fullmatch(text) is not None


def is_command_line(line: str) -> bool:
    return line.upper().startswith(_COMMAND_PREFIXES)


def is_pid_request_line(line: str) -> bool:
    if not line.startswith(">") or is_command_line(line):
        return False
    head = line[1:3]
    return len(head) == 2 and is_hex(head)


def format_response(
    lines: Iterable[str],
    protocol: str | None,
    header_lengths: dict[str, int] | None = None,
) -> list[str]:
    """Strip the per-protocol header prefix from each response line."""
    lines = list(lines)
    if not protocol:
        return lines
    if header_lengths is None:
        header_lengths = DEFAULT_HEADER_LENGTHS
    cut = header_lengths.get(protocol)
    if not cut:
        return lines
    return [line[cut:] for line in lines]


class SessionParser:
    """
    Single-use parser for one transcript.

    The active protocol is tracked while lines are classified, so create a
    new instance for every transcript.
    """

    def __init__(self, config: ParserConfig | None = None) -> None:
        self._cfg = config or ParserConfig()
        self._last_protocol: str | None = None
        self._used = False

    def _is_command(self, line: str) -> bool:
        upper = line.upper()
        if upper.startswith(_SET_PROTOCOL_PREFIX):
            self._last_protocol = upper[len(_SET_PROTOCOL_PREFIX) :].strip()
            logger.debug("Current protocol: %s", self._last_protocol)
        return upper.startswith(_COMMAND_PREFIXES)

    def _is_pid_request(self, line: str) -> bool:
        if not line.startswith(">") or self._is_command(line):
            return False
        return is_pid_request_line(line)

    def _window(self, lines: list[str]) -> list[str]:
        start = -1
        for i, line in enumerate(lines):
            if line.strip().upper() == self._cfg.reset_command:
                start = i
        logger.debug("Transcript window starts after line %d", start)
        return lines[start + 1 :]

    def _find_pid_requests(self, window: list[str]) -> list[int]:
        indices: list[int] = []
        for i, raw in enumerate(window):
            line = raw.strip()
            is_request = self._is_pid_request(line)
            if is_request and i + 1 < len(window) and is_hex(window[i + 1].strip()):
                indices.append(i)
        return indices

    def _second_to_last(self, window: list[str], pid_indices: list[int]) -> PIDRecord | None:
        if len(pid_indices) < 2:
            return None
        last_idx = pid_indices[-1]
        prev_idx = pid_indices[-2]

        response: list[str] = []
        for raw in window[prev_idx + 1 : last_idx]:
            line = raw.strip()
            if line and not self._is_command(line):
                response.append(line)

        formatted = format_response(response, self._last_protocol, self._cfg.header_lengths)
        return PIDRecord(request=window[prev_idx].strip()[1:], response=tuple(formatted))

    def _is_response_end(self, line: str) -> bool:
        return not line or line.startswith(">") or line.startswith("[") or line in self._cfg.response_terminators

    def _collect_commands(self, window: list[str]) -> list[ParsedCommand]:
        commands: list[ParsedCommand] = []
        i = 0
        while i < len(window):
            line = window[i].strip()
            if not self._is_command(line):
                i += 1
                continue

            j = i + 1
            response: list[str] = []
            while j < len(window):
                resp_line = window[j].strip()
                if self._is_response_end(resp_line):
                    break
                response.append(resp_line)
                j += 1

            name = line[1:]
            if name in self._cfg.ignored_commands:
                logger.debug("Skipping ignored command %s", name)
            else:
                commands.append(ParsedCommand(command=name, response=tuple(response)))
            i = j
        return commands

    def _collect_pid_responses(self, window: list[str], pid_indices: list[int]) -> dict[str, tuple[str, ...]]:
        out: dict[str, tuple[str, ...]] = {}
        for n, idx in enumerate(pid_indices):
            end = pid_indices[n + 1] if n + 1 < len(pid_indices) else len(window)
            request = window[idx].strip()[1:]
            response = [
                line
                for line in (raw.strip() for raw in window[idx + 1 : end])
                if line and not line.startswith(">") and is_hex(line)
            ]
            if response:
                out[request] = tuple(response)
        return out

    def parse_log(self, text: str) -> SessionState:
        if self._used:
            raise RuntimeError("SessionParser instances are single-use; create a new parser per transcript")
        self._used = True

        window = self._window(split_lines(text))
        pid_indices = self._find_pid_requests(window)
        second_to_last = self._second_to_last(window, pid_indices)
        commands = self._collect_commands(window)
        pid_responses = self._collect_pid_responses(window, pid_indices)

        logger.debug(
            "Parsed %d commands, %d PID requests (%d distinct), protocol=%s",
            len(commands),
            len(pid_indices),
            len(pid_responses),
            self._last_protocol,
        )
        return SessionState(
            last_protocol=self._last_protocol,
            commands=commands,
            pid_responses=pid_responses,
            second_to_last_pid=second_to_last,
        )


def parse_log(text: str, config: ParserConfig | None = None) -> SessionState:
    return SessionParser(config).parse_log(text)


def select_payload(state: SessionState, pid: str | None = None) -> tuple[str, ...]:
    """
    Pick the response lines an expression is evaluated against.

    Defaults to the second-to-last PID; ``pid`` selects a request from the
    full response map instead.
    """
    if pid is None:
        record = state.second_to_last_pid
        if record is None or not record.response:
            raise NoPayloadError("transcript has no second-to-last PID response")
        return record.response

    response = state.pid_responses.get(pid)
    if response is None:
        # Request ids are matched case-insensitively as a fallback.
        for key, value in state.pid_responses.items():
            if key.upper() == pid.upper():
                response = value
                break
    if not response:
        raise NoPayloadError(f"no response recorded for PID request {pid!r}")
    return response


def read_transcript(path: Path) -> str:
    try:
        with path.open("r", encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise TranscriptReadError(f"{path}: not valid UTF-8 text ({e.reason})") from e
    except OSError as e:
        raise TranscriptReadError(f"{path}: {e.strerror or e}") from e
