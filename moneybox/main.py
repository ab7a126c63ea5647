import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NamedTuple, Optional

from .core import db
from .core.config import get_settings
from .core.dependencies import get_transfer_money, get_withdraw_money
from .services import NotificationService, SqlAccountRepository, TransferMoney, WithdrawMoney


class Moneybox(NamedTuple):
    repository: SqlAccountRepository
    withdraw: WithdrawMoney
    transfer: TransferMoney


def bootstrap() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    db.init_db()


@contextmanager
def open_moneybox(notifications: Optional[NotificationService] = None) -> Iterator[Moneybox]:
    sessions = db.get_session()
    session = next(sessions)
    try:
        yield Moneybox(
            repository=SqlAccountRepository(session),
            withdraw=get_withdraw_money(session, notifications),
            transfer=get_transfer_money(session, notifications),
        )
    finally:
        sessions.close()
