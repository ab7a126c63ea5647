from typing import Optional

from sqlmodel import Session

from ..services import (
    LoggingNotificationService,
    NotificationService,
    SqlAccountRepository,
    TransferMoney,
    WithdrawMoney,
)
from .config import Settings, get_settings


def get_notification_service() -> NotificationService:
    return LoggingNotificationService()


def get_withdraw_money(
    session: Session,
    notifications: Optional[NotificationService] = None,
    settings: Optional[Settings] = None,
) -> WithdrawMoney:
    repository = SqlAccountRepository(session)
    return WithdrawMoney(
        repository,
        notifications or get_notification_service(),
        settings=settings or get_settings(),
    )


def get_transfer_money(
    session: Session,
    notifications: Optional[NotificationService] = None,
    settings: Optional[Settings] = None,
) -> TransferMoney:
    repository = SqlAccountRepository(session)
    return TransferMoney(
        repository,
        notifications or get_notification_service(),
        settings=settings or get_settings(),
    )
