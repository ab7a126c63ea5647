from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from .domain import Account


class AccountSnapshot(BaseModel):
    id: UUID
    balance: Decimal = Field(..., ge=0)
    withdrawn: Decimal = Field(..., ge=0)
    paid_in: Decimal = Field(..., ge=0)

    @classmethod
    def from_account(cls, account: Account) -> "AccountSnapshot":
        return cls(
            id=account.id,
            balance=account.balance,
            withdrawn=account.withdrawn,
            paid_in=account.paid_in,
        )


class WithdrawalResult(BaseModel):
    account: AccountSnapshot
    amount: Decimal
    attempts: int = Field(..., ge=1, description="Attempts used, including the committed one")
    notifications: list[str] = Field(default_factory=list, description="Notification kinds delivered")


class TransferResult(BaseModel):
    source: AccountSnapshot
    destination: AccountSnapshot
    amount: Decimal
    attempts: int = Field(..., ge=1)
    notifications: list[str] = Field(default_factory=list)
