"""
Error Taxonomy Module

Every failure the banking core can report is a BankError subclass carrying a
stable code string. The API layer maps these codes to HTTP status codes.
"""

from typing import Optional


class BankError(Exception):
    """Base class for all banking errors"""
    code = "bank_error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidRequestError(BankError):
    """Request is malformed (non-positive amount, same account, unknown currency)"""
    code = "invalid_request"


class NotFoundError(BankError):
    """A record lookup by ID found nothing"""
    code = "not_found"


class AccountNotFoundError(NotFoundError):
    """An account referenced by a transfer does not exist"""
    code = "account_not_found"

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class CurrencyMismatchError(BankError):
    """Account currency differs from the requested transfer currency"""
    code = "currency_mismatch"

    def __init__(self, account_id: int, account_currency: str, requested_currency: str):
        super().__init__(
            f"Account {account_id} currency mismatch: "
            f"{account_currency} vs {requested_currency}"
        )
        self.account_id = account_id
        self.account_currency = account_currency
        self.requested_currency = requested_currency


class InsufficientFundsError(BankError):
    """Debit would leave the source account with a negative balance"""
    code = "insufficient_funds"

    def __init__(self, account_id: int, balance: int, amount: int):
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"balance {balance}, requested {amount}"
        )
        self.account_id = account_id
        self.balance = balance
        self.amount = amount


class UnauthorizedError(BankError):
    """Missing or invalid credentials, or the acting owner does not own the source account"""
    code = "unauthorized"


class ForbiddenError(BankError):
    """Authenticated user may not act on behalf of another owner"""
    code = "forbidden"


class TransactionConflictError(BankError):
    """Serialization failure, lock timeout or deadlock; safe to retry"""
    code = "transaction_conflict"
    retryable = True


class TransferCancelledError(BankError):
    """Caller cancelled the transfer or its deadline passed before commit"""
    code = "transfer_cancelled"


class InternalError(BankError):
    """Store or connectivity failure; not retryable"""
    code = "internal_error"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message or "internal error")
        self.cause = cause
