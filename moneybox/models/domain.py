from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

from ..core.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    PayInLimitExceededError,
)


PAY_IN_LIMIT = Decimal("4000")
MINOR_UNIT = Decimal("0.01")


def to_amount(value: Any) -> Decimal:
    """Coerce a caller supplied amount to a positive, finite ``Decimal``.

    Accepts ``Decimal``, ``int`` and numeric strings; floats and amounts
    finer than one minor unit (0.01) are refused.
    """
    if isinstance(value, (bool, float)):
        raise InvalidAmountError(f"Amount must be a Decimal, int or str, got {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    try:
        whole_cents = amount == amount.quantize(MINOR_UNIT)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Amount {amount} is out of range") from exc
    if not whole_cents:
        raise InvalidAmountError(f"Amount {amount} has more than two decimal places")
    return amount


@dataclass
class User:
    name: str
    email: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    @property
    def contact_address(self) -> Optional[str]:
        if self.email is None or not self.email.strip():
            return None
        return self.email


@dataclass
class Account:
    """Balance-bearing aggregate.

    ``withdrawn`` and ``paid_in`` are lifetime totals. ``version`` is the
    optimistic concurrency token; only the store changes it.
    """

    owner: Optional[User] = None
    balance: Decimal = Decimal("0")
    withdrawn: Decimal = Decimal("0")
    paid_in: Decimal = Decimal("0")
    id: UUID = field(default_factory=uuid4)
    version: int = 0

    @property
    def contact_address(self) -> Optional[str]:
        return self.owner.contact_address if self.owner is not None else None

    @property
    def remaining_pay_in(self) -> Decimal:
        return PAY_IN_LIMIT - self.paid_in

    def withdraw(self, amount: Decimal) -> None:
        amount = to_amount(amount)
        if self.balance < amount:
            raise InsufficientFundsError("Insufficient funds to make transfer")
        balance, withdrawn = self.balance - amount, self.withdrawn + amount
        self.balance, self.withdrawn = balance, withdrawn

    def deposit(self, amount: Decimal) -> None:
        amount = to_amount(amount)
        if self.paid_in + amount > PAY_IN_LIMIT:
            raise PayInLimitExceededError("Account pay in limit reached")
        balance, paid_in = self.balance + amount, self.paid_in + amount
        self.balance, self.paid_in = balance, paid_in
