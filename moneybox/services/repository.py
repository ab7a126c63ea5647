from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager
from copy import deepcopy
from typing import Optional, Protocol
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import ConcurrencyConflictError, UnexpectedStoreError
from ..models import Account, AccountRecord, User, UserRecord


class AccountRepository(Protocol):
    """What the money-movement operations need from an account store.

    ``update`` must detect a stale ``version`` and raise
    ``ConcurrencyConflictError``; any other failure surfaces as
    ``UnexpectedStoreError``. Writes made inside ``transaction()`` become
    visible to other callers only when the block exits cleanly.
    """

    def get_account(self, account_id: UUID) -> Optional[Account]:
        ...

    def update(self, account: Account) -> None:
        ...

    def transaction(self) -> AbstractContextManager[None]:
        ...


class SqlAccountRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
        except Exception:
            self.session.rollback()
            raise
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UnexpectedStoreError("Failed to commit account changes") from exc

    # Account operations -------------------------------------------------
    def add_account(self, account: Account) -> Account:
        owner = account.owner
        try:
            if owner is not None and self.session.get(UserRecord, owner.id) is None:
                self.session.add(UserRecord(id=owner.id, name=owner.name, email=owner.email))
            self.session.add(
                AccountRecord(
                    id=account.id,
                    user_id=owner.id if owner is not None else None,
                    balance=account.balance,
                    withdrawn=account.withdrawn,
                    paid_in=account.paid_in,
                    version=account.version,
                )
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise UnexpectedStoreError(f"Failed to add account {account.id}") from exc
        return account

    def get_account(self, account_id: UUID) -> Optional[Account]:
        try:
            record = self.session.get(AccountRecord, account_id, populate_existing=True)
            if record is None:
                return None
            owner = None
            if record.user_id is not None:
                user = self.session.get(UserRecord, record.user_id)
                if user is not None:
                    owner = User(id=user.id, name=user.name, email=user.email)
        except SQLAlchemyError as exc:
            raise UnexpectedStoreError(f"Failed to load account {account_id}") from exc

        return Account(
            id=record.id,
            owner=owner,
            balance=record.balance,
            withdrawn=record.withdrawn,
            paid_in=record.paid_in,
            version=record.version,
        )

    def _exists(self, account_id: UUID) -> bool:
        stmt = select(AccountRecord.id).where(AccountRecord.id == account_id)
        try:
            return self.session.exec(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise UnexpectedStoreError(f"Failed to load account {account_id}") from exc

    def update(self, account: Account) -> None:
        stmt = (
            update(AccountRecord)
            .where(AccountRecord.id == account.id)
            .where(AccountRecord.version == account.version)
            .values(
                balance=account.balance,
                withdrawn=account.withdrawn,
                paid_in=account.paid_in,
                version=account.version + 1,
            )
        )
        try:
            result = self.session.connection().execute(stmt)
        except SQLAlchemyError as exc:
            raise UnexpectedStoreError(f"Failed to update account {account.id}") from exc

        if result.rowcount == 0:
            if not self._exists(account.id):
                raise UnexpectedStoreError(f"Account {account.id} is not in the store")
            raise ConcurrencyConflictError(
                f"Account {account.id} was modified by another transaction"
            )
        account.version += 1


class InMemoryAccountRepository:
    """Process-local account store with optimistic concurrency.

    Writes made inside ``transaction()`` are buffered per thread and
    validated against the committed versions when the block exits.
    """

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: dict[UUID, Account] = {}
        self._lock = threading.RLock()
        self._local = threading.local()
        for account in accounts:
            self.add_account(account)

    def _pending(self) -> Optional[dict[UUID, tuple[int, Account]]]:
        return getattr(self._local, "pending", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._pending() is not None:
            raise UnexpectedStoreError("Nested transactions are not supported")
        self._local.pending = {}
        try:
            yield
            self._commit(self._local.pending)
        finally:
            self._local.pending = None

    def _commit(self, pending: dict[UUID, tuple[int, Account]]) -> None:
        with self._lock:
            for account_id, (base_version, _) in pending.items():
                if self._accounts[account_id].version != base_version:
                    raise ConcurrencyConflictError(
                        f"Account {account_id} was modified by another transaction"
                    )
            for account_id, (_, written) in pending.items():
                self._accounts[account_id] = written

    def add_account(self, account: Account) -> Account:
        with self._lock:
            self._accounts[account.id] = deepcopy(account)
        return account

    def get_account(self, account_id: UUID) -> Optional[Account]:
        pending = self._pending()
        if pending is not None and account_id in pending:
            return deepcopy(pending[account_id][1])
        with self._lock:
            stored = self._accounts.get(account_id)
            return deepcopy(stored) if stored is not None else None

    def update(self, account: Account) -> None:
        pending = self._pending()
        with self._lock:
            stored = self._accounts.get(account.id)
            if stored is None:
                raise UnexpectedStoreError(f"Account {account.id} is not in the store")

            if pending is not None and account.id in pending:
                base_version, current = pending[account.id]
            else:
                base_version, current = stored.version, stored
            if account.version != current.version:
                raise ConcurrencyConflictError(
                    f"Account {account.id} was modified by another transaction"
                )

            written = deepcopy(account)
            written.version += 1
            if pending is None:
                self._accounts[account.id] = written
            else:
                pending[account.id] = (base_version, written)
        account.version = written.version
