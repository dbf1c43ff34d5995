"""
Exception hierarchy for the retail banking backend.

Every domain failure raised by the managers derives from BankingError so the
HTTP layer can map error kinds to status codes in one place.
"""


class BankingError(Exception):
    """Base exception for all banking domain errors."""


class TokenFormatError(BankingError):
    """Raised when a customer token cannot be decoded into a phone number."""


class CustomerNotFoundError(BankingError):
    """Raised when no customer owns the given phone number or id."""


class DuplicateCustomerError(BankingError):
    """Raised when registering a phone number that is already taken."""


class ProductNotFoundError(BankingError):
    """Raised when a referenced product does not exist."""


class AccountNotFoundError(BankingError):
    """Raised when an account number does not resolve to an account."""


class AccountNumberCollisionError(BankingError):
    """Raised when no unused account number could be generated."""


class InsufficientFundsError(BankingError):
    """Raised when a withdrawal exceeds the available balance."""


class InvalidAmountError(BankingError):
    """Raised when an amount or auto-transfer setting is out of range."""


class NonZeroBalanceCloseError(BankingError):
    """Raised when closing an account that still holds money."""


class TransactionFailedError(BankingError):
    """Raised when an unexpected failure aborts a unit of work."""
