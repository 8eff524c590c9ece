from dataclasses import dataclass


@dataclass
class Account:
    """
    Domain representation of a ledger account.

    `account_number` is the externally visible key every operation uses;
    `id` is the internal, monotonically assigned row identifier. Balances
    are integers in the smallest currency unit and never go negative.
    """

    id: int
    account_number: str
    pin: str
    balance: int
