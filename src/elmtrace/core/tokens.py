from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Literal, Union

from elmtrace.core.errors import TokenizeError


OperatorSymbol = Literal["+", "-", "*", "/", "&", "|", "^", "<<", ">>"]

# Precedence tiers, lowest binds loosest.
PRECEDENCE: dict[str, int] = {
    "|": 1,
    "^": 1,
    "&": 2,
    "<<": 3,
    ">>": 3,
    "+": 4,
    "-": 4,
    "*": 5,
    "/": 5,
}

_SINGLE_OPERATORS = frozenset("+-*/&|^")
_DIGITS = frozenset("0123456789")
_RANGE_RE = re.compile(r"\s*([BS])(\d+)\s*:\s*([BS])(\d+)\s*")


@dataclass(frozen=True)
class NumberLiteral:
    value: int | float
    position: int


@dataclass(frozen=True)
class Variable:
    position: int


@dataclass(frozen=True)
class ByteRef:
    signed: bool
    index: int
    bit: int | None
    position: int


@dataclass(frozen=True)
class RangeRef:
    signed: bool
    start: int
    end: int
    position: int


@dataclass(frozen=True)
class Operator:
    symbol: OperatorSymbol
    position: int

    @property
    def precedence(self) -> int:
        return PRECEDENCE[self.symbol]


@dataclass(frozen=True)
class LeftParen:
    position: int


@dataclass(frozen=True)
class RightParen:
    position: int


Token = Union[NumberLiteral, Variable, ByteRef, RangeRef, Operator, LeftParen, RightParen]


def _parse_number(text: str, position: int) -> int | float:
    try:
        value = float(text)
    except ValueError:
        raise TokenizeError(f"Invalid number literal {text!r}", position=position) from None
    if value.is_integer():
        return int(value)
    return value


def tokenize(expression: str) -> Iterator[Token]:
    """
    Lazily yield the tokens of a byte expression.

    Errors are raised at the offending character, so a consumer that stops
    early never sees problems further along the input.
    """
    i = 0
    n = len(expression)
    while i < n:
        ch = expression[i]

        if ch.isspace():
            i += 1
            continue

        if ch in _DIGITS or ch == ".":
            start = i
            while i < n and (expression[i] in _DIGITS or expression[i] == "."):
                i += 1
            yield NumberLiteral(value=_parse_number(expression[start:i], start), position=start)
            continue

        if ch == "V":
            yield Variable(position=i)
            i += 1
            continue

        if ch == "[":
            start = i
            close = expression.find("]", i + 1)
            if close < 0:
                raise TokenizeError("Unterminated range, expected ']'", position=start)
            m = _RANGE_RE.fullmatch(expression, i + 1, close)
            if m is None:
                raise TokenizeError(f"Invalid range syntax {expression[start : close + 1]!r}", position=start)
            yield RangeRef(
                signed=m.group(1) == "S",
                start=int(m.group(2)),
                end=int(m.group(4)),
                position=start,
            )
            i = close + 1
            continue

        if ch in ("B", "S"):
            start = i
            i += 1
            digits_start = i
            while i < n and expression[i] in _DIGITS:
                i += 1
            if i == digits_start:
                raise TokenizeError(f"Expected byte index after {ch!r}", position=start)
            index = int(expression[digits_start:i])
            bit: int | None = None
            if i < n and expression[i] == ":":
                i += 1
                if i >= n or expression[i] not in "01234567":
                    raise TokenizeError("Expected bit number 0-7 after ':'", position=i)
                bit = int(expression[i])
                i += 1
            yield ByteRef(signed=ch == "S", index=index, bit=bit, position=start)
            continue

        if ch == "(":
            yield LeftParen(position=i)
            i += 1
            continue

        if ch == ")":
            yield RightParen(position=i)
            i += 1
            continue

        if ch in ("<", ">"):
            start = i
            i += 2 if i + 1 < n and expression[i + 1] == ch else 1
            yield Operator(symbol="<<" if ch == "<" else ">>", position=start)
            continue

        if ch in _SINGLE_OPERATORS:
            yield Operator(symbol=ch, position=i)  # type: ignore[arg-type]
            i += 1
            continue

        raise TokenizeError(f"Invalid character: {ch!r}", position=i)
