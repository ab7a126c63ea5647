class MoneyboxError(Exception):
    """Base class for every error raised by the money-movement core."""


class InvalidAmountError(MoneyboxError, ValueError):
    """Raised when an amount is not a positive, finite decimal."""


class SameAccountTransferError(MoneyboxError, ValueError):
    """Raised when a transfer names the same account on both sides."""


class AccountNotFoundError(MoneyboxError, LookupError):
    """Raised when an account id is missing from the store."""


class InsufficientFundsError(MoneyboxError):
    """Raised when a withdrawal/transfer would drop balance below zero."""


class PayInLimitExceededError(MoneyboxError):
    """Raised when a deposit would take paid-in above the pay-in limit."""


class ConcurrencyConflictError(MoneyboxError):
    """Raised when another writer changed an account under us.

    Retryable while attempts remain; the error that escapes an operation
    carries the number of attempts that were made.
    """

    def __init__(self, message: str, *, attempts: int | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts


class NotificationDeliveryError(MoneyboxError):
    """Raised when the notifier fails; never escapes an operation."""


class UnexpectedStoreError(MoneyboxError):
    """Raised when the store fails for a reason other than a conflict."""
