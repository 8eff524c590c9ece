from __future__ import annotations

from typing import Union

from .errors import InvalidAmountError

# Balances live in signed 64-bit INTEGER columns.
MAX_AMOUNT = 2**63 - 1


def parse_amount(value: Union[int, str]) -> int:
    """
    Parse a caller-supplied amount into a non-negative integer.

    Accepts plain ints and strings of ASCII digits (surrounding whitespace
    is ignored). Anything else, including negative numbers, fractions,
    signs and booleans, raises `InvalidAmountError`.
    """

    if isinstance(value, bool):
        raise InvalidAmountError(value)

    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not text or not text.isascii() or not text.isdigit():
            raise InvalidAmountError(value)
        amount = int(text)
    else:
        raise InvalidAmountError(value)

    if amount < 0 or amount > MAX_AMOUNT:
        raise InvalidAmountError(value)
    return amount
