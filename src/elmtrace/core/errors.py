from __future__ import annotations


class ElmtraceError(Exception):
    """Base class for every error raised by elmtrace."""


class ExpressionError(ElmtraceError, ValueError):
    """
    A byte expression could not be evaluated.

    - kind: stable identifier of the failure, used to pick a user-facing message
    - position: character offset in the expression, when known
    """

    kind = "expression"

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "message": self.message, "position": self.position}


class TokenizeError(ExpressionError):
    kind = "tokenize"


class RangeTooLargeError(ExpressionError):
    kind = "range_too_large"


class IndexOutOfBoundsError(ExpressionError, IndexError):
    kind = "index_out_of_bounds"

    def __init__(self, index: int, length: int, *, position: int | None = None) -> None:
        super().__init__(f"Byte index {index} out of range for buffer of length {length}", position=position)
        self.index = index
        self.length = length


class EvalArithmeticError(ExpressionError, ZeroDivisionError):
    kind = "arithmetic"


class NumericOverflowError(ExpressionError, OverflowError):
    kind = "overflow"


class StackUnderflowError(ExpressionError):
    kind = "stack_underflow"


class UnbalancedParenError(ExpressionError):
    kind = "unbalanced_paren"


class MalformedResultError(ExpressionError):
    kind = "malformed_result"


class TranscriptReadError(ElmtraceError, OSError):
    """The transcript file could not be read or decoded."""


class NoPayloadError(ElmtraceError, LookupError):
    """The session holds no response data to evaluate against."""


_ERROR_MESSAGES: dict[str, str] = {
    "tokenize": "Invalid expression syntax",
    "range_too_large": "Range too large for 64-bit storage",
    "index_out_of_bounds": "Byte index outside of response data",
    "arithmetic": "Division by zero",
    "overflow": "Number too large to represent",
    "stack_underflow": "Operator is missing an operand",
    "unbalanced_paren": "Mismatched parentheses",
    "malformed_result": "Invalid expression",
}


def describe_error(error: ElmtraceError) -> str:
    if isinstance(error, ExpressionError):
        headline = _ERROR_MESSAGES.get(error.kind, "Invalid expression")
        where = f" at position {error.position}" if error.position is not None else ""
        return f"Error: {headline}{where}: {error.message}"
    if isinstance(error, NoPayloadError):
        return f"Error: No valid PID response data: {error}"
    if isinstance(error, TranscriptReadError):
        return f"Error reading file: {error}"
    return f"Error: {error}"
