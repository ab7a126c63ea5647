import uuid
from decimal import Decimal

import pytest

from ..core.errors import (
    AccountNotFoundError,
    ConcurrencyConflictError,
    InsufficientFundsError,
    InvalidAmountError,
    PayInLimitExceededError,
    SameAccountTransferError,
)
from ..services import TransferMoney
from .conftest import FakeAccountRepository, FakeNotificationService


@pytest.fixture
def build(notifier, retry_policy, settings):
    def _build(repository, notifications=None) -> TransferMoney:
        return TransferMoney(
            repository,
            notifications or notifier,
            retry_policy=retry_policy,
            settings=settings,
        )

    return _build


def test_transfer_updates_both_accounts(build, make_account, notifier) -> None:
    source = make_account(balance="1000", withdrawn="50")
    destination = make_account(balance="100", paid_in="100")
    repo = FakeAccountRepository(source, destination)

    result = build(repo).execute(source.id, destination.id, Decimal("200"))

    assert len(repo.updated) == 2
    stored_source = repo.get_account(source.id)
    stored_destination = repo.get_account(destination.id)
    assert (stored_source.balance, stored_source.withdrawn) == (Decimal("800"), Decimal("250"))
    assert (stored_destination.balance, stored_destination.paid_in) == (Decimal("300"), Decimal("300"))
    assert result.source.balance == Decimal("800")
    assert result.destination.paid_in == Decimal("300")
    assert result.attempts == 1
    assert notifier.sent == []


def test_transfer_conserves_total_balance(build, make_account) -> None:
    source = make_account(balance="1234.56")
    destination = make_account(balance="78.90")
    repo = FakeAccountRepository(source, destination)

    build(repo).execute(source.id, destination.id, "99.99")

    total = repo.get_account(source.id).balance + repo.get_account(destination.id).balance
    assert total == Decimal("1313.46")


def test_transfer_insufficient_funds_writes_nothing(build, make_account) -> None:
    source = make_account(balance="100")
    destination = make_account()
    repo = FakeAccountRepository(source, destination)

    with pytest.raises(InsufficientFundsError):
        build(repo).execute(source.id, destination.id, Decimal("200"))

    assert repo.updated == []
    assert repo.get_account(source.id).balance == Decimal("100")
    assert repo.get_account(destination.id).balance == Decimal("0")


def test_transfer_pay_in_limit_exceeded_writes_nothing(build, make_account, delays) -> None:
    source = make_account(balance="1000")
    destination = make_account(balance="50", paid_in="3950")
    repo = FakeAccountRepository(source, destination)

    with pytest.raises(PayInLimitExceededError):
        build(repo).execute(source.id, destination.id, Decimal("100"))

    assert repo.updated == []
    assert delays == []
    assert repo.get_account(source.id).balance == Decimal("1000")
    assert repo.get_account(source.id).withdrawn == Decimal("0")
    assert repo.get_account(destination.id).paid_in == Decimal("3950")


def test_transfer_failure_is_repeatable(build, make_account) -> None:
    source = make_account(balance="100")
    destination = make_account()
    repo = FakeAccountRepository(source, destination)
    service = build(repo)

    for _ in range(2):
        with pytest.raises(InsufficientFundsError):
            service.execute(source.id, destination.id, Decimal("150"))
        assert repo.get_account(source.id).balance == Decimal("100")
        assert repo.get_account(source.id).version == 0


def test_transfer_from_balance_below_threshold_notifies_funds_low(build, make_account, notifier) -> None:
    source = make_account(balance="600", email="from@example.com")
    destination = make_account(email="to@example.com")
    repo = FakeAccountRepository(source, destination)

    result = build(repo).execute(source.id, destination.id, Decimal("200"))

    assert notifier.sent == [("funds_low", "from@example.com")]
    assert result.notifications == ["funds_low"]


def test_transfer_to_account_near_pay_in_limit_notifies(build, make_account, notifier) -> None:
    source = make_account(balance="1000", email="from@example.com")
    destination = make_account(paid_in="3600", email="to@example.com")
    repo = FakeAccountRepository(source, destination)

    result = build(repo).execute(source.id, destination.id, Decimal("200"))

    assert notifier.sent == [("approaching_pay_in_limit", "to@example.com")]
    assert result.notifications == ["approaching_pay_in_limit"]


def test_one_failed_notification_does_not_block_the_other(build, make_account) -> None:
    source = make_account(balance="600", email="from@example.com")
    destination = make_account(paid_in="3600", email="to@example.com")
    repo = FakeAccountRepository(source, destination)
    notifications = FakeNotificationService(failing=("funds_low",))

    result = build(repo, notifications).execute(source.id, destination.id, Decimal("200"))

    assert notifications.sent == [("approaching_pay_in_limit", "to@example.com")]
    assert result.notifications == ["approaching_pay_in_limit"]
    assert result.attempts == 1
    assert repo.get_account(source.id).balance == Decimal("400")


def test_transfer_to_same_account_is_rejected(build, make_account) -> None:
    account = make_account(balance="500")
    repo = FakeAccountRepository(account)

    with pytest.raises(SameAccountTransferError):
        build(repo).execute(account.id, account.id, Decimal("10"))


def test_transfer_rejects_invalid_amount(build, make_account) -> None:
    source = make_account(balance="500")
    destination = make_account()
    repo = FakeAccountRepository(source, destination)

    with pytest.raises(InvalidAmountError):
        build(repo).execute(source.id, destination.id, Decimal("0"))


@pytest.mark.parametrize("missing", ["source", "destination"])
def test_transfer_missing_account(build, make_account, delays, missing) -> None:
    present = make_account(balance="500")
    repo = FakeAccountRepository(present)
    ids = (uuid.uuid4(), present.id) if missing == "source" else (present.id, uuid.uuid4())

    with pytest.raises(AccountNotFoundError):
        build(repo).execute(*ids, Decimal("10"))

    assert delays == []
    assert repo.updated == []


def test_transfer_retries_conflicts_and_notifies_once(build, make_account, notifier) -> None:
    source = make_account(balance="600")
    destination = make_account(balance="0")
    repo = FakeAccountRepository(source, destination)
    repo.conflicts_remaining = 2

    result = build(repo).execute(source.id, destination.id, Decimal("200"))

    assert result.attempts == 3
    assert notifier.sent == [("funds_low", "owner@example.com")]
    assert repo.get_account(source.id).balance == Decimal("400")
    assert repo.get_account(destination.id).balance == Decimal("200")


def test_transfer_destination_conflict_rolls_back_source(build, make_account, notifier) -> None:
    source = make_account(balance="600")
    destination = make_account(balance="0")
    repo = FakeAccountRepository(source, destination)
    repo.conflict_on_id = destination.id

    with pytest.raises(ConcurrencyConflictError) as excinfo:
        build(repo).execute(source.id, destination.id, Decimal("200"))

    assert excinfo.value.attempts == 3
    assert notifier.sent == []
    assert repo.get_account(source.id).balance == Decimal("600")
    assert repo.get_account(source.id).withdrawn == Decimal("0")
    assert repo.get_account(destination.id).balance == Decimal("0")


def test_transfer_detects_lost_update_on_reread(build, make_account) -> None:
    source = make_account(balance="1000")
    destination = make_account(balance="0")
    repo = FakeAccountRepository(source, destination)
    repo.tamper_reads_remaining = 1

    result = build(repo).execute(source.id, destination.id, Decimal("100"))

    assert result.attempts == 2
    assert repo.get_account(source.id).balance == Decimal("900")
    assert repo.get_account(destination.id).balance == Decimal("100")
