"""
Account and Transfer Validation

Checks run before the transfer's atomic unit opens. They only read from the
store and never mutate it.
"""

from typing import Optional, Tuple

from .accounts import Account
from .currency import is_supported_currency
from .errors import (
    AccountNotFoundError, CurrencyMismatchError, InvalidRequestError,
    NotFoundError, UnauthorizedError
)


def validate_transfer_params(from_account_id: int, to_account_id: int,
                             amount: int, currency: str) -> None:
    """Reject malformed transfer requests before touching the store"""
    if from_account_id is None or from_account_id < 1:
        raise InvalidRequestError("from_account_id must be a positive integer")
    if to_account_id is None or to_account_id < 1:
        raise InvalidRequestError("to_account_id must be a positive integer")
    if from_account_id == to_account_id:
        raise InvalidRequestError("cannot transfer to the same account")
    if amount is None or amount <= 0:
        raise InvalidRequestError("amount must be positive")
    if not is_supported_currency(currency):
        raise InvalidRequestError(f"unsupported currency: {currency}")


def validate_account(store, account_id: int, currency: str) -> Account:
    """
    Fetch an account and check it holds the requested currency

    Raises:
        AccountNotFoundError: If the account does not exist
        CurrencyMismatchError: If the account's currency differs
    """
    try:
        account = store.get_account(account_id)
    except NotFoundError:
        raise AccountNotFoundError(account_id)

    if account.currency != currency.upper():
        raise CurrencyMismatchError(account.id, account.currency, currency.upper())
    return account


def validate_owner(account: Account, acting_owner: Optional[str]) -> None:
    """Reject if an acting owner is given and does not own the account"""
    if acting_owner is not None and account.owner != acting_owner:
        raise UnauthorizedError(
            f"account {account.id} does not belong to the authenticated user"
        )


def validate_transfer_request(
    store,
    from_account_id: int,
    to_account_id: int,
    amount: int,
    currency: str,
    acting_owner: Optional[str] = None
) -> Tuple[Account, Account]:
    """
    Full pre-transaction validation of a transfer request.

    The to-account is only read once the acting owner has been confirmed
    as owner of the from-account.
    """
    validate_transfer_params(from_account_id, to_account_id, amount, currency)
    from_account = validate_account(store, from_account_id, currency)
    validate_owner(from_account, acting_owner)
    to_account = validate_account(store, to_account_id, currency)
    return from_account, to_account
