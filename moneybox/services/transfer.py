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
    PayInLimitExceededError,
    SameAccountTransferError,
)
from ..models import Account, AccountSnapshot, TransferResult, to_amount
from .notifications import (
    NotificationService,
    PendingNotification,
    approaching_pay_in_limit,
    dispatch_notifications,
    funds_low,
)
from .repository import AccountRepository
from .retry import RetryPolicy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Committed:
    source: Account
    destination: Account
    notifications: tuple[Optional[PendingNotification], ...]


class TransferMoney:
    """Move funds from one account to another.

    Both accounts are re-read, debited/credited in memory, written back and
    verified inside a single transactional scope per attempt, so the two
    sides are always retried together. Notifications for the source (funds
    low) and the destination (approaching the pay-in limit) are captured
    from the verified state and sent after the retry loop has committed.
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
        self.pay_in_limit_warning = settings.pay_in_limit_warning

    def execute(self, from_account_id: UUID, to_account_id: UUID, amount: Any) -> TransferResult:
        context = {
            "source_account_id": str(from_account_id),
            "dest_account_id": str(to_account_id),
        }
        amount = to_amount(amount)
        context["amount"] = str(amount)
        logger.debug("transfer.requested", extra=context)

        if from_account_id == to_account_id:
            logger.error("transfer.same_account", extra=context)
            raise SameAccountTransferError("Cannot transfer to the same account")

        committed, attempts = self.retry_policy.run(
            lambda attempt: self._attempt(from_account_id, to_account_id, amount, attempt),
            operation="transfer",
            context=context,
        )
        logger.info("transfer.completed", extra={**context, "attempt": attempts})

        delivered = dispatch_notifications(self.notifications, committed.notifications)
        return TransferResult(
            source=AccountSnapshot.from_account(committed.source),
            destination=AccountSnapshot.from_account(committed.destination),
            amount=amount,
            attempts=attempts,
            notifications=[kind.value for kind in delivered],
        )

    def _load(self, account_id: UUID, role: str) -> Account:
        account = self.repository.get_account(account_id)
        if account is None:
            logger.error("transfer.account_not_found", extra={"account_id": str(account_id), "role": role})
            raise AccountNotFoundError(f"{role.capitalize()} account {account_id} not found")
        return account

    def _attempt(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        attempt: int,
    ) -> _Committed:
        with self.repository.transaction():
            source = self._load(from_account_id, "source")
            destination = self._load(to_account_id, "destination")

            if source.balance < amount:
                logger.warning(
                    "transfer.insufficient_funds",
                    extra={
                        "source_account_id": str(from_account_id),
                        "amount": str(amount),
                        "balance": str(source.balance),
                    },
                )
                raise InsufficientFundsError("Insufficient funds in source account")

            expected_from_balance = source.balance - amount
            expected_to_balance = destination.balance + amount

            source.withdraw(amount)
            try:
                destination.deposit(amount)
            except PayInLimitExceededError:
                logger.warning(
                    "transfer.pay_in_limit_exceeded",
                    extra={
                        "dest_account_id": str(to_account_id),
                        "amount": str(amount),
                        "paid_in": str(destination.paid_in),
                    },
                )
                raise

            self.repository.update(source)
            self.repository.update(destination)

            verified_source = self._load(from_account_id, "source")
            verified_destination = self._load(to_account_id, "destination")
            if (
                verified_source.balance != expected_from_balance
                or verified_destination.balance != expected_to_balance
            ):
                logger.warning(
                    "transfer.lost_update",
                    extra={
                        "source_account_id": str(from_account_id),
                        "dest_account_id": str(to_account_id),
                        "attempt": attempt,
                        "expected_source": str(expected_from_balance),
                        "expected_dest": str(expected_to_balance),
                        "observed_source": str(verified_source.balance),
                        "observed_dest": str(verified_destination.balance),
                    },
                )
                raise ConcurrencyConflictError(
                    "Concurrent modification detected; the transfer could not be completed."
                )

            pending = (
                funds_low(verified_source, self.funds_low_threshold),
                approaching_pay_in_limit(verified_destination, self.pay_in_limit_warning),
            )
        return _Committed(source=verified_source, destination=verified_destination, notifications=pending)
