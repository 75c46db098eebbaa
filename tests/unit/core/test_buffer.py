from __future__ import annotations

import pytest

from elmtrace.core.buffer import ByteBuffer, split_hex_pairs


def test_from_hex_lines_concatenates_lines() -> None:
    buf = ByteBuffer.from_hex_lines(["4100BE", "3f"])
    assert buf.to_list() == [0x41, 0x00, 0xBE, 0x3F]
    assert len(buf) == 4
    assert buf[2] == 0xBE
    assert buf.hex() == "4100BE3F"


def test_trailing_odd_nibble_is_its_own_byte() -> None:
    assert split_hex_pairs("ABC") == ["AB", "C"]
    assert ByteBuffer.from_hex_lines(["ABC"]).to_list() == [0xAB, 0x0C]


def test_invalid_hex_raises() -> None:
    with pytest.raises(ValueError):
        ByteBuffer.from_hex_lines(["41 0C"])
    with pytest.raises(ValueError):
        ByteBuffer.from_hex_lines(["ZZ"])


def test_from_bytes_and_iteration() -> None:
    buf = ByteBuffer.from_bytes([1, 2, 255])
    assert list(buf) == [1, 2, 255]
    with pytest.raises(IndexError):
        buf[3]
