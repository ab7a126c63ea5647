from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol
from uuid import UUID

from ..core.errors import NotificationDeliveryError
from ..models import Account


logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    def notify_funds_low(self, email_address: str) -> None:
        ...

    def notify_approaching_pay_in_limit(self, email_address: str) -> None:
        ...


class LoggingNotificationService:
    """Default notifier: records the advisory in the log and delivers nothing."""

    def notify_funds_low(self, email_address: str) -> None:
        logger.info("notification.funds_low", extra={"email": email_address})

    def notify_approaching_pay_in_limit(self, email_address: str) -> None:
        logger.info("notification.approaching_pay_in_limit", extra={"email": email_address})


class NotificationKind(str, Enum):
    FUNDS_LOW = "funds_low"
    APPROACHING_PAY_IN_LIMIT = "approaching_pay_in_limit"


@dataclass(frozen=True)
class PendingNotification:
    """A notification decided during an attempt, sent after it commits."""

    kind: NotificationKind
    account_id: UUID
    email: str


def funds_low(account: Account, threshold: Decimal) -> Optional[PendingNotification]:
    email = account.contact_address
    if email is None or account.balance >= threshold:
        return None
    return PendingNotification(NotificationKind.FUNDS_LOW, account.id, email)


def approaching_pay_in_limit(account: Account, warning: Decimal) -> Optional[PendingNotification]:
    email = account.contact_address
    if email is None or account.remaining_pay_in >= warning:
        return None
    return PendingNotification(NotificationKind.APPROACHING_PAY_IN_LIMIT, account.id, email)


def _deliver(service: NotificationService, notification: PendingNotification) -> None:
    try:
        if notification.kind is NotificationKind.FUNDS_LOW:
            service.notify_funds_low(notification.email)
        else:
            service.notify_approaching_pay_in_limit(notification.email)
    except Exception as exc:
        raise NotificationDeliveryError(
            f"Failed to send {notification.kind.value} notification to {notification.email}"
        ) from exc


def dispatch_notifications(
    service: NotificationService,
    pending: Iterable[Optional[PendingNotification]],
) -> list[NotificationKind]:
    """Send each pending notification on its own.

    A failed delivery is logged and skipped; it never reaches the caller.
    Returns the kinds that were delivered.
    """
    delivered: list[NotificationKind] = []
    for notification in pending:
        if notification is None:
            continue
        context = {
            "kind": notification.kind.value,
            "account_id": str(notification.account_id),
            "email": notification.email,
        }
        try:
            _deliver(service, notification)
        except NotificationDeliveryError:
            logger.exception("notification.failed", extra=context)
            continue
        logger.info("notification.sent", extra=context)
        delivered.append(notification.kind)
    return delivered
