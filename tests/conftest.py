"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure src is in path
_SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# Captured with headers on (ATH1) over ISO 15765-4 CAN 11/500 (ATSP6).
ELM_SESSION = "\n".join(
    [
        "Connecting...",
        ">ATZ",
        "ATZ",
        "ELM327 v1.5",
        ">ATE0",
        "OK",
        ">ATSP6",
        "OK",
        ">ATH1",
        "OK",
        ">0100",
        "7E8064100BE3FA813",
        ">010C",
        "7E804410C1AF8",
        ">0105",
        "7E803410575",
        "",
    ]
)


@pytest.fixture
def elm_session() -> str:
    return ELM_SESSION


@pytest.fixture
def transcript_file(tmp_path: Path):
    """Factory writing a transcript to a temporary file."""

    def _write(text: str = ELM_SESSION, name: str = "session.log") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8", newline="")
        return path

    return _write


@pytest.fixture
def buffer_factory():
    from elmtrace.core.buffer import ByteBuffer

    def _create(*values: int) -> ByteBuffer:
        return ByteBuffer.from_bytes(values)

    return _create
