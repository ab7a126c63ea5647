from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.types import String, TypeDecorator
from sqlmodel import Field, SQLModel


class Money(TypeDecorator):
    """Decimal stored as its exact text form.

    ``Numeric`` falls back to binary floats on SQLite, so amounts are kept
    as strings and parsed back into ``Decimal`` on load.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value: Optional[str], dialect) -> Optional[Decimal]:
        if value is None:
            return None
        return Decimal(value)


class UserRecord(SQLModel, table=True):
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    name: str
    email: Optional[str] = None


class AccountRecord(SQLModel, table=True):
    __tablename__ = "accounts"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    user_id: Optional[UUID] = Field(default=None, foreign_key="users.id", index=True)
    balance: Decimal = Field(default=Decimal("0"), sa_type=Money)
    withdrawn: Decimal = Field(default=Decimal("0"), sa_type=Money)
    paid_in: Decimal = Field(default=Decimal("0"), sa_type=Money)
    version: int = Field(default=0)
