from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Iterable, Iterator


def split_hex_pairs(line: str) -> list[str]:
    # A trailing odd nibble becomes its own chunk.
    return [line[i : i + 2] for i in range(0, len(line), 2)]


@dataclass(frozen=True)
class ByteBuffer:
    data: bytes = b""

    @classmethod
    def from_bytes(cls, data: Iterable[int]) -> ByteBuffer:
        return cls(data=bytes(data))

    @classmethod
    def from_hex_lines(cls, lines: Iterable[str]) -> ByteBuffer:
        """
        Decode response lines into one buffer.

        Each line is cut into two-character chunks which are parsed as hex;
        lines are concatenated in order.
        """
        out = bytearray()
        for line in lines:
            for chunk in split_hex_pairs(line.strip()):
                if not all(ch in string.hexdigits for ch in chunk):
                    raise ValueError(f"Invalid hex byte {chunk!r} in response line {line!r}")
                out.append(int(chunk, 16))
        return cls(data=bytes(out))

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, index: int) -> int:
        return self.data[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self.data)

    def hex(self) -> str:
        return self.data.hex().upper()

    def to_list(self) -> list[int]:
        return list(self.data)
