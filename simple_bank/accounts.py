"""
Account Management Module

Ledger records (accounts, entries, transfers) and the AccountManager used by
the non-transactional endpoints. Balances are integers in minor units.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from .currency import Currency
from .errors import InvalidRequestError
from .logging_config import get_logger, log_action


@dataclass(frozen=True)
class LedgerRecord:
    """Base class for all ledger rows"""
    id: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        return result


@dataclass(frozen=True)
class Account(LedgerRecord):
    """Customer account holding a single-currency balance"""
    owner: str
    balance: int
    currency: str


@dataclass(frozen=True)
class Entry(LedgerRecord):
    """
    Immutable ledger row recording a signed balance change.
    Positive amounts are credits, negative amounts are debits.
    """
    account_id: int
    amount: int


@dataclass(frozen=True)
class Transfer(LedgerRecord):
    """Immutable record of a directed fund movement between two accounts"""
    from_account_id: int
    to_account_id: int
    amount: int


class AccountManager:
    """
    Account operations that act on the ledger store directly,
    outside of the transfer transaction.
    """

    def __init__(self, store):
        self.store = store
        self.logger = get_logger("simple_bank.accounts")

    def create_account(self, owner: str, currency: str, balance: int = 0) -> Account:
        """
        Open a new account

        Args:
            owner: Username owning the account
            currency: Three-letter currency code
            balance: Opening balance in minor units

        Returns:
            Created Account

        Raises:
            InvalidRequestError: If owner is empty, currency unsupported or balance negative
        """
        if not owner or not owner.strip():
            raise InvalidRequestError("Account owner is required")
        try:
            currency = Currency.from_code(currency).code
        except ValueError as e:
            raise InvalidRequestError(str(e))
        if balance < 0:
            raise InvalidRequestError("Opening balance cannot be negative")

        account = self.store.create_account(owner=owner, balance=balance, currency=currency)

        log_action(
            self.logger, "info", "Account created",
            user_id=owner, action="create_account", resource=f"account:{account.id}",
            extra={"currency": currency, "balance": balance}
        )
        return account

    def get_account(self, account_id: int) -> Account:
        """Get account by ID; raises NotFoundError if missing"""
        return self.store.get_account(account_id)

    def get_account_entries(self, account_id: int, limit: int = 50, offset: int = 0) -> List[Entry]:
        """Ledger entries for an account, oldest first"""
        self.store.get_account(account_id)
        return self.store.list_entries(account_id, limit=limit, offset=offset)

    def get_account_transfers(
        self,
        account_id: int,
        limit: int = 50,
        offset: int = 0,
        direction: Optional[str] = None
    ) -> List[Transfer]:
        """
        Transfers touching an account

        Args:
            account_id: Account to look up
            limit: Page size
            offset: Rows to skip
            direction: "out", "in", or None for both sides
        """
        self.store.get_account(account_id)
        if direction == "out":
            return self.store.list_transfers(from_account_id=account_id, limit=limit, offset=offset)
        if direction == "in":
            return self.store.list_transfers(to_account_id=account_id, limit=limit, offset=offset)
        return self.store.list_transfers(
            from_account_id=account_id, to_account_id=account_id, limit=limit, offset=offset
        )

    def get_transfer(self, transfer_id: int) -> Transfer:
        """Get transfer by ID; raises NotFoundError if missing"""
        return self.store.get_transfer(transfer_id)
