from __future__ import annotations

import secrets

DEFAULT_LENGTH = 10


def luhn_check_digit(payload: str) -> str:
    """Return the Luhn check digit for a string of decimal digits."""

    total = 0
    # Walk right to left; the digit next to the check digit is doubled.
    for index, char in enumerate(reversed(payload)):
        digit = int(char)
        if index % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return str((10 - total % 10) % 10)


def is_valid_account_number(value: str) -> bool:
    if len(value) < 2 or not value.isascii() or not value.isdigit():
        return False
    return luhn_check_digit(value[:-1]) == value[-1]


def generate_account_number(length: int = DEFAULT_LENGTH) -> str:
    """
    Generate a printable account number of `length` digits.

    The last digit is a Luhn checksum over the random payload. Uniqueness
    is not guaranteed here; the store rejects duplicates on insert.
    """

    if length < 2:
        raise ValueError("Account numbers need at least two digits.")

    payload = "".join(str(secrets.randbelow(10)) for _ in range(length - 1))
    return payload + luhn_check_digit(payload)
