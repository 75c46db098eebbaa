from __future__ import annotations

import pytest

from elmtrace.core.errors import TokenizeError
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


def test_tokenize_all_token_kinds() -> None:
    tokens = list(tokenize("B12:3 + [S0:B3] << V"))
    assert tokens == [
        ByteRef(signed=False, index=12, bit=3, position=0),
        Operator(symbol="+", position=6),
        RangeRef(signed=True, start=0, end=3, position=8),
        Operator(symbol="<<", position=16),
        Variable(position=19),
    ]


def test_tokenize_numbers_and_parens() -> None:
    tokens = list(tokenize("(2.5*S7)"))
    assert tokens == [
        LeftParen(position=0),
        NumberLiteral(value=2.5, position=1),
        Operator(symbol="*", position=4),
        ByteRef(signed=True, index=7, bit=None, position=5),
        RightParen(position=7),
    ]


def test_integral_literals_are_ints() -> None:
    (token,) = tokenize("10.0")
    assert isinstance(token, NumberLiteral)
    assert token.value == 10
    assert isinstance(token.value, int)


def test_single_and_double_shift_lex_the_same() -> None:
    single = [t.symbol for t in tokenize("1 > 2 < 3") if isinstance(t, Operator)]
    double = [t.symbol for t in tokenize("1 >> 2 << 3") if isinstance(t, Operator)]
    assert single == double == [">>", "<<"]


def test_range_allows_inner_whitespace() -> None:
    (token,) = tokenize("[ B1 : B4 ]")
    assert token == RangeRef(signed=False, start=1, end=4, position=0)


def test_tokenizer_is_lazy() -> None:
    gen = tokenize("1 + $")
    assert next(gen) == NumberLiteral(value=1, position=0)
    assert next(gen) == Operator(symbol="+", position=2)
    with pytest.raises(TokenizeError) as excinfo:
        next(gen)
    assert excinfo.value.position == 4


@pytest.mark.parametrize("expression", ["x", "B0:", "[B0]", "[X0:B1]", "[B0:B1", "S", "v", "0x10"])
def test_invalid_input(expression: str) -> None:
    with pytest.raises(TokenizeError):
        list(tokenize(expression))
