from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from ..core.config import Settings, get_settings
from ..core.errors import (
    AccountNotFoundError,
    ConcurrencyConflictError,
    InsufficientFundsError,
)
from ..models import Account, AccountSnapshot, WithdrawalResult, to_amount
from .notifications import (
    NotificationService,
    PendingNotification,
    dispatch_notifications,
    funds_low,
)
from .repository import AccountRepository
from .retry import RetryPolicy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Committed:
    account: Account
    notification: Optional[PendingNotification]


class WithdrawMoney:
    """Withdraw funds from a single account.

    Each attempt re-reads the account, applies the withdrawal, writes it
    back and re-reads again to check the write stuck. A conflict from the
    store or from that check is retried under the retry policy. The funds
    low notification is decided from the verified state and sent once,
    after the attempt has committed.
    """

    def __init__(
        self,
        repository: AccountRepository,
        notifications: NotificationService,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        if repository is None:
            raise ValueError("repository is required")
        if notifications is None:
            raise ValueError("notifications is required")
        settings = settings or get_settings()
        self.repository = repository
        self.notifications = notifications
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.funds_low_threshold = settings.funds_low_threshold

    def execute(self, account_id: UUID, amount: Any) -> WithdrawalResult:
        amount = to_amount(amount)
        context = {"account_id": str(account_id), "amount": str(amount)}
        logger.debug("withdraw.requested", extra=context)

        committed, attempts = self.retry_policy.run(
            lambda attempt: self._attempt(account_id, amount, attempt),
            operation="withdraw",
            context=context,
        )
        logger.info(
            "withdraw.completed",
            extra={**context, "attempt": attempts, "balance": str(committed.account.balance)},
        )

        delivered = dispatch_notifications(self.notifications, [committed.notification])
        return WithdrawalResult(
            account=AccountSnapshot.from_account(committed.account),
            amount=amount,
            attempts=attempts,
            notifications=[kind.value for kind in delivered],
        )

    def _attempt(self, account_id: UUID, amount: Decimal, attempt: int) -> _Committed:
        with self.repository.transaction():
            account = self.repository.get_account(account_id)
            if account is None:
                logger.error("withdraw.account_not_found", extra={"account_id": str(account_id)})
                raise AccountNotFoundError(f"Account {account_id} not found")

            try:
                account.withdraw(amount)
            except InsufficientFundsError:
                logger.warning(
                    "withdraw.insufficient_funds",
                    extra={
                        "account_id": str(account_id),
                        "amount": str(amount),
                        "balance": str(account.balance),
                    },
                )
                raise

            expected_balance = account.balance
            self.repository.update(account)

            verified = self.repository.get_account(account_id)
            if verified is None:
                raise AccountNotFoundError(f"Account {account_id} not found after update verification")
            if verified.balance != expected_balance:
                logger.warning(
                    "withdraw.lost_update",
                    extra={
                        "account_id": str(account_id),
                        "attempt": attempt,
                        "expected": str(expected_balance),
                        "observed": str(verified.balance),
                    },
                )
                raise ConcurrencyConflictError(
                    "Concurrent modification detected; the withdrawal could not be completed."
                )

            notification = funds_low(verified, self.funds_low_threshold)
        return _Committed(account=verified, notification=notification)
