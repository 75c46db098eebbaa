"""
Byte expression evaluator.

Evaluates expressions such as ``(B3 * 256 + B4) / 4`` or ``[S0:S1] >> 2``
against a ByteBuffer with a two-stack (shunting-yard) interpreter. Nothing is
kept between calls, so evaluation is a pure function of
``(expression, buffer, v)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from elmtrace.core.buffer import ByteBuffer
from elmtrace.core.errors import (
    EvalArithmeticError,
    ExpressionError,
    IndexOutOfBoundsError,
    MalformedResultError,
    NumericOverflowError,
    RangeTooLargeError,
    StackUnderflowError,
    UnbalancedParenError,
)
from elmtrace.core.tokens import (
    ByteRef,
    LeftParen,
    NumberLiteral,
    Operator,
    RangeRef,
    RightParen,
    Variable,
    tokenize,
)


Number = Union[int, float]

# A range may span at most 8 bytes (64-bit accumulator).
MAX_RANGE_SPAN = 7

_INT32_MASK = 0xFFFFFFFF
_ARITHMETIC = frozenset(("+", "-", "*", "/"))
_BITWISE = frozenset(("&", "|", "^", "<<", ">>"))


@dataclass(frozen=True)
class EvalResult:
    result: Number
    accessed_indices: tuple[int, ...]

    def to_dict(self) -> dict[str, object]:
        return {"result": self.result, "accessed_indices": list(self.accessed_indices)}


def to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - 0x100000000 if value & 0x80000000 else value


def sign_extend(value: int, bits: int) -> int:
    mask = (1 << bits) - 1
    value &= mask
    return value - (1 << bits) if value & (1 << (bits - 1)) else value


def signed_byte(value: int) -> int:
    return value - 256 if value > 127 else value


class _AccessTracker:
    def __init__(self, buffer: ByteBuffer) -> None:
        self._buffer = buffer
        self._seen: dict[int, None] = {}

    def read(self, index: int, *, position: int) -> int:
        if index < 0 or index >= len(self._buffer):
            raise IndexOutOfBoundsError(index, len(self._buffer), position=position)
        self._seen[index] = None
        return self._buffer[index]

    @property
    def indices(self) -> tuple[int, ...]:
        return tuple(self._seen)


def read_byte(ref: ByteRef, tracker: _AccessTracker) -> int:
    value = tracker.read(ref.index, position=ref.position)
    if ref.signed:
        value = signed_byte(value)
    if ref.bit is not None:
        value = (value >> ref.bit) & 1
    return value


def read_range(ref: RangeRef, tracker: _AccessTracker) -> int:
    span = ref.end - ref.start
    if span < 0:
        raise RangeTooLargeError(f"Range end {ref.end} precedes start {ref.start}", position=ref.position)
    if span > MAX_RANGE_SPAN:
        raise RangeTooLargeError(
            f"Range too large for 64-bit storage: {span + 1} bytes (max {MAX_RANGE_SPAN + 1})",
            position=ref.position,
        )

    acc = 0
    for j in range(ref.start, ref.end + 1):
        value = tracker.read(j, position=ref.position)
        if ref.signed:
            value = signed_byte(value)
        acc |= value << (8 * (ref.end - j))

    if ref.signed:
        if span == 0:
            acc = sign_extend(acc, 8)
        elif span == 1:
            acc = sign_extend(acc, 16)
        elif span <= 3:
            acc = sign_extend(acc, 32)
        # Wider signed ranges keep the raw accumulator.
    return acc


def _truncate(value: Number) -> int:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    return value


def _normalize(value: Number) -> Number:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _arithmetic(symbol: str, left: Number, right: Number, position: int | None) -> Number:
    if symbol == "+":
        return left + right
    if symbol == "-":
        return left - right
    if symbol == "*":
        return left * right
    if right == 0:
        raise EvalArithmeticError("Division by zero", position=position)
    return left / right


def apply_operator(symbol: str, left: Number, right: Number, *, position: int | None = None) -> Number:
    if symbol in _ARITHMETIC:
        try:
            return _normalize(_arithmetic(symbol, left, right, position))
        except OverflowError as e:
            # ints beyond float range mixed with a float or divided with "/"
            raise NumericOverflowError(f"Result of {symbol!r} does not fit in a float", position=position) from e

    if symbol in _BITWISE:
        a = to_int32(_truncate(left))
        b = to_int32(_truncate(right))
        if symbol == "&":
            return to_int32(a & b)
        if symbol == "|":
            return to_int32(a | b)
        if symbol == "^":
            return to_int32(a ^ b)
        if symbol == "<<":
            return to_int32(a << (b & 31))
        return a >> (b & 31)

    raise ExpressionError(f"Unknown operator {symbol!r}", position=position)


def _reduce(operands: list[Number], operators: list[Operator | LeftParen]) -> None:
    op = operators.pop()
    if not isinstance(op, Operator):
        raise UnbalancedParenError("Mismatched parentheses: unclosed '('", position=op.position)
    if len(operands) < 2:
        raise StackUnderflowError(f"Operator {op.symbol!r} needs two operands", position=op.position)
    right = operands.pop()
    left = operands.pop()
    operands.append(apply_operator(op.symbol, left, right, position=op.position))


def evaluate(expression: str, buffer: ByteBuffer, v: Number = 0) -> EvalResult:
    """
    Evaluate ``expression`` against ``buffer`` with ``V`` bound to ``v``.

    Raises an ExpressionError subclass at the first failure.
    """
    operands: list[Number] = []
    operators: list[Operator | LeftParen] = []
    tracker = _AccessTracker(buffer)

    for token in tokenize(expression):
        if isinstance(token, NumberLiteral):
            operands.append(token.value)
        elif isinstance(token, Variable):
            operands.append(_normalize(v))
        elif isinstance(token, ByteRef):
            operands.append(read_byte(token, tracker))
        elif isinstance(token, RangeRef):
            operands.append(read_range(token, tracker))
        elif isinstance(token, LeftParen):
            operators.append(token)
        elif isinstance(token, RightParen):
            while operators and isinstance(operators[-1], Operator):
                _reduce(operands, operators)
            if not operators:
                raise UnbalancedParenError("Mismatched parentheses: unexpected ')'", position=token.position)
            operators.pop()
        else:
            while operators and isinstance(operators[-1], Operator) and operators[-1].precedence >= token.precedence:
                _reduce(operands, operators)
            operators.append(token)

    while operators:
        if isinstance(operators[-1], LeftParen):
            raise UnbalancedParenError("Mismatched parentheses: unclosed '('", position=operators[-1].position)
        _reduce(operands, operators)

    if len(operands) != 1:
        raise MalformedResultError(f"Expression left {len(operands)} values instead of one")

    return EvalResult(result=operands[0], accessed_indices=tracker.indices)


def safe_evaluate(
    expression: str, buffer: ByteBuffer, v: Number = 0
) -> tuple[EvalResult | None, ExpressionError | None]:
    try:
        return evaluate(expression, buffer, v), None
    except ExpressionError as e:
        return None, e
