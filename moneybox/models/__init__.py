from .db import AccountRecord, UserRecord
from .domain import PAY_IN_LIMIT, Account, User, to_amount
from .schemas import AccountSnapshot, TransferResult, WithdrawalResult

__all__ = [
    "PAY_IN_LIMIT",
    "Account",
    "User",
    "to_amount",
    "AccountSnapshot",
    "TransferResult",
    "WithdrawalResult",
    "AccountRecord",
    "UserRecord",
]
