from copy import deepcopy
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from ..core.config import Settings
from ..core.errors import ConcurrencyConflictError
from ..models import Account, User
from ..services import InMemoryAccountRepository, RetryPolicy


class FakeNotificationService:
    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = failing

    def _record(self, kind: str, email_address: str) -> None:
        if kind in self.failing:
            raise RuntimeError(f"{kind} delivery is down")
        self.sent.append((kind, email_address))

    def notify_funds_low(self, email_address: str) -> None:
        self._record("funds_low", email_address)

    def notify_approaching_pay_in_limit(self, email_address: str) -> None:
        self._record("approaching_pay_in_limit", email_address)


class FakeAccountRepository(InMemoryAccountRepository):
    """In-memory store that records every write and can force conflicts."""

    def __init__(self, *accounts: Account) -> None:
        super().__init__(accounts)
        self.updated: list[Account] = []
        self.conflicts_remaining = 0
        self.conflict_on_id: Optional[UUID] = None
        self.tamper_reads_remaining = 0
        self._tamper_next_read: Optional[UUID] = None

    def update(self, account: Account) -> None:
        self.updated.append(deepcopy(account))
        if self.conflict_on_id is not None and account.id == self.conflict_on_id:
            raise ConcurrencyConflictError("Forced concurrency exception for testing.")
        if self.conflicts_remaining > 0:
            self.conflicts_remaining -= 1
            raise ConcurrencyConflictError("Forced concurrency exception for testing.")
        super().update(account)
        if self.tamper_reads_remaining > 0:
            self.tamper_reads_remaining -= 1
            self._tamper_next_read = account.id

    def get_account(self, account_id: UUID) -> Optional[Account]:
        account = super().get_account(account_id)
        if account is not None and self._tamper_next_read == account_id:
            # another writer slipped in between our write and the re-read
            self._tamper_next_read = None
            account.balance -= Decimal("1")
        return account


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def retry_policy(delays: list[float]) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, backoff_seconds=0.05, sleep=delays.append)


@pytest.fixture
def notifier() -> FakeNotificationService:
    return FakeNotificationService()


@pytest.fixture
def make_account():
    def _make(
        balance: str = "0",
        withdrawn: str = "0",
        paid_in: str = "0",
        email: Optional[str] = "owner@example.com",
    ) -> Account:
        return Account(
            owner=User(name="Test User", email=email),
            balance=Decimal(balance),
            withdrawn=Decimal(withdrawn),
            paid_in=Decimal(paid_in),
        )

    return _make
