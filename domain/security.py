from __future__ import annotations

import hmac
import secrets
import string

from .errors import WrongPinError
from .models import Account

PIN_LENGTH = 6

# Column default for rows inserted without an explicit PIN.
DEFAULT_PIN = "0" * PIN_LENGTH


def generate_pin(length: int = PIN_LENGTH) -> str:
    """Return a random numeric PIN, each digit drawn uniformly."""

    return "".join(secrets.choice(string.digits) for _ in range(length))


def verify_pin(account: Account, supplied_pin: str) -> bool:
    """
    Compare `supplied_pin` against the PIN stored for `account`.

    This is exact string equality; PINs are neither normalised nor hashed.
    """

    if not isinstance(supplied_pin, str):
        return False
    # surrogatepass keeps the encoding one-to-one for any str, lone
    # surrogates included.
    return hmac.compare_digest(
        account.pin.encode("utf-8", "surrogatepass"),
        supplied_pin.encode("utf-8", "surrogatepass"),
    )


def require_pin(account: Account, supplied_pin: str) -> None:
    """Raise `WrongPinError` unless `supplied_pin` authenticates `account`."""

    if not verify_pin(account, supplied_pin):
        raise WrongPinError()
