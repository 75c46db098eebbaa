from __future__ import annotations

import json
from typing import Any, Iterable

from elmtrace.core.buffer import ByteBuffer
from elmtrace.core.evaluator import EvalResult
from elmtrace.core.session import SessionState


def to_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2)


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_byte_table(buffer: ByteBuffer, accessed: Iterable[int] = (), *, per_row: int = 16) -> str:
    """
    Render the buffer as rows of hex bytes with their indices underneath.

    Bytes read by an expression are wrapped in brackets.
    """
    marked = set(accessed)
    rows: list[str] = []
    for row_start in range(0, len(buffer), per_row):
        byte_cells: list[str] = []
        index_cells: list[str] = []
        for index in range(row_start, min(row_start + per_row, len(buffer))):
            cell = f"{buffer[index]:02X}"
            byte_cells.append(f"[{cell}]" if index in marked else f" {cell} ")
            index_cells.append(f"{index:^4}")
        rows.append("".join(byte_cells).rstrip())
        rows.append("".join(index_cells).rstrip())
    return "\n".join(rows)


def render_pid_lines(state: SessionState) -> list[str]:
    return [f"{record.request}: {' '.join(record.response)}" for record in state.all_pid_responses()]


def evaluation_to_dict(buffer: ByteBuffer, evaluation: EvalResult) -> dict[str, Any]:
    out = evaluation.to_dict()
    out["bytes"] = buffer.hex()
    return out
