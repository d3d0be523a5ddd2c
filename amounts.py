"""Money helpers.

Amounts are stored as a positive number of cents plus an explicit
``TransactionType``.  The wire format carries decimal amounts with at most two
fractional digits.  Some clients still speak the older signed representation
(negative means expense); ``to_signed``/``from_signed`` are the only places
where a sign is attached to or removed from an amount.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from models import TransactionType

CENT = Decimal("0.01")
MAX_AMOUNT_CENTS = 100_000_000_000

AmountLike = Union[Decimal, int, float, str]


def parse_amount(value: AmountLike) -> Decimal:
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, bool):
        raise ValueError("Invalid amount")
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        # Plain decimals only: "1,000" or "1_000" are rejected, not reinterpreted
        text = value.strip()
        if "_" in text:
            raise ValueError("Invalid amount")
        try:
            amount = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    return amount


def to_cents(value: AmountLike) -> int:
    amount = parse_amount(value)
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return float((Decimal(cents) * CENT).quantize(CENT))


def to_signed(txn_type: TransactionType, cents: int) -> int:
    return cents if txn_type == TransactionType.income else -cents


def from_signed(cents: int) -> tuple[TransactionType, int]:
    if cents < 0:
        return TransactionType.expense, -cents
    return TransactionType.income, cents
