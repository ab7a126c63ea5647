from .notifications import (
    LoggingNotificationService,
    NotificationKind,
    NotificationService,
    PendingNotification,
    dispatch_notifications,
)
from .repository import AccountRepository, InMemoryAccountRepository, SqlAccountRepository
from .retry import RetryPolicy
from .transfer import TransferMoney
from .withdraw import WithdrawMoney

__all__ = [
    "AccountRepository",
    "InMemoryAccountRepository",
    "SqlAccountRepository",
    "LoggingNotificationService",
    "NotificationKind",
    "NotificationService",
    "PendingNotification",
    "dispatch_notifications",
    "RetryPolicy",
    "TransferMoney",
    "WithdrawMoney",
]
