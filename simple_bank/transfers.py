"""
Transfer Transaction Module

Moves money between two accounts as one atomic unit: a transfer record, two
ledger entries and two balance increments either all persist or none do.

Lock ordering: balance updates always touch the lower account ID first, no
matter which way the money flows. Two transfers over the same pair of
accounts therefore acquire the row locks in the same order and cannot
deadlock each other.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import time

from .accounts import Account, Entry, Transfer
from .config import BankConfig
from .context import TransferContext
from .errors import (
    BankError, InsufficientFundsError, InternalError, InvalidRequestError,
    TransactionConflictError
)
from .logging_config import get_logger, log_action
from .storage import LedgerOperations, LedgerStore
from .validation import validate_transfer_request


@dataclass(frozen=True)
class TransferTxParams:
    """Input of the transfer transaction"""
    from_account_id: int
    to_account_id: int
    amount: int


@dataclass(frozen=True)
class TransferTxResult:
    """Everything the transfer transaction wrote, as committed"""
    transfer: Transfer
    from_entry: Entry
    to_entry: Entry
    from_account: Account
    to_account: Account

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transfer": self.transfer.to_dict(),
            "from_entry": self.from_entry.to_dict(),
            "to_entry": self.to_entry.to_dict(),
            "from_account": self.from_account.to_dict(),
            "to_account": self.to_account.to_dict(),
        }


class TransferProcessor:
    """
    Executes money transfers against a ledger store. Holds no state between
    calls; every invocation is self-contained.
    """

    def __init__(self, store: LedgerStore, config: Optional[BankConfig] = None):
        self.store = store
        self.config = config or BankConfig()
        self.logger = get_logger("simple_bank.transfers")

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: int,
        currency: str,
        acting_owner: Optional[str] = None,
        context: Optional[TransferContext] = None
    ) -> TransferTxResult:
        """
        Validate a transfer request and execute it

        Args:
            from_account_id: Account to debit
            to_account_id: Account to credit
            amount: Positive amount in minor units
            currency: Currency both accounts must hold
            acting_owner: Authenticated username; must own the from-account
            context: Optional cancellation/deadline context

        Returns:
            TransferTxResult with the committed rows

        Raises:
            InvalidRequestError, AccountNotFoundError, CurrencyMismatchError,
            UnauthorizedError: Request rejected before any store mutation
            InsufficientFundsError: Debit would overdraw the from-account
            TransactionConflictError: Still conflicting after all retries
            TransferCancelledError: Cancelled or timed out before commit
            InternalError: Store failure
        """
        context = context or TransferContext()
        try:
            validate_transfer_request(
                self.store, from_account_id, to_account_id, amount, currency, acting_owner
            )
        except BankError as e:
            log_action(
                self.logger, "warning", f"Transfer rejected: {e.message}",
                user_id=acting_owner, action="transfer_rejected",
                resource=f"account:{from_account_id}",
                correlation_id=context.correlation_id,
                extra={"to_account": to_account_id, "amount": amount,
                       "currency": currency, "error": e.code}
            )
            raise

        return self.transfer_tx(
            TransferTxParams(from_account_id, to_account_id, amount),
            context=context,
            acting_owner=acting_owner
        )

    def transfer_tx(
        self,
        params: TransferTxParams,
        context: Optional[TransferContext] = None,
        acting_owner: Optional[str] = None
    ) -> TransferTxResult:
        """
        Run the transfer atomic unit, retrying on transaction conflicts

        Conflicts are retried up to config.max_transfer_retries times with a
        linear backoff before TransactionConflictError is re-raised. A
        conflict caused by the context's deadline cutting a lock wait short
        surfaces as TransferCancelledError instead.
        """
        if params.amount <= 0:
            raise InvalidRequestError("amount must be positive")
        if params.from_account_id == params.to_account_id:
            raise InvalidRequestError("cannot transfer to the same account")

        context = context or TransferContext()
        attempt = 0
        while True:
            attempt += 1
            try:
                try:
                    result = self._run_unit(params, context)
                except TransactionConflictError:
                    context.check()
                    raise
            except TransactionConflictError as e:
                if attempt > self.config.max_transfer_retries:
                    log_action(
                        self.logger, "error", "Transfer failed after conflict retries",
                        user_id=acting_owner, action="transfer_failed",
                        resource=f"account:{params.from_account_id}",
                        correlation_id=context.correlation_id,
                        extra={"attempts": attempt, "error": e.message}
                    )
                    raise
                log_action(
                    self.logger, "warning", "Transfer conflict, retrying",
                    user_id=acting_owner, action="transfer_conflict_retry",
                    resource=f"account:{params.from_account_id}",
                    correlation_id=context.correlation_id,
                    extra={"attempt": attempt, "error": e.message}
                )
                time.sleep(self.config.retry_backoff_seconds * attempt)
                continue
            except BankError as e:
                internal = isinstance(e, InternalError)
                log_action(
                    self.logger, "error" if internal else "warning",
                    f"Transfer rolled back: {e.message}",
                    user_id=acting_owner,
                    action="transfer_failed" if internal else "transfer_rejected",
                    resource=f"account:{params.from_account_id}",
                    correlation_id=context.correlation_id,
                    extra={"to_account": params.to_account_id, "amount": params.amount,
                           "error": e.code}
                )
                raise
            except Exception as e:
                log_action(
                    self.logger, "error", f"Transfer failed: {e}",
                    user_id=acting_owner, action="transfer_failed",
                    resource=f"account:{params.from_account_id}",
                    correlation_id=context.correlation_id, exc_info=True
                )
                raise InternalError(f"transfer failed: {e}", cause=e) from e

            log_action(
                self.logger, "info", "Transfer committed",
                user_id=acting_owner, action="transfer_committed",
                resource=f"transfer:{result.transfer.id}",
                correlation_id=context.correlation_id,
                extra={
                    "from_account": params.from_account_id,
                    "to_account": params.to_account_id,
                    "amount": params.amount,
                    "attempts": attempt
                }
            )
            return result

    def _run_unit(self, params: TransferTxParams,
                  context: TransferContext) -> TransferTxResult:
        context.check()

        with self.store.atomic(context=context) as unit:
            transfer = unit.create_transfer(
                params.from_account_id, params.to_account_id, params.amount
            )
            context.check()
            from_entry = unit.create_entry(params.from_account_id, -params.amount)
            to_entry = unit.create_entry(params.to_account_id, params.amount)
            context.check()

            if params.from_account_id < params.to_account_id:
                from_account, to_account = self._move_money(
                    unit, params.from_account_id, -params.amount,
                    params.to_account_id, params.amount
                )
            else:
                to_account, from_account = self._move_money(
                    unit, params.to_account_id, params.amount,
                    params.from_account_id, -params.amount
                )

            if from_account.balance < 0 and not self.config.allow_negative_balance:
                raise InsufficientFundsError(
                    from_account.id, from_account.balance + params.amount, params.amount
                )
            context.check()

        return TransferTxResult(
            transfer=transfer,
            from_entry=from_entry,
            to_entry=to_entry,
            from_account=from_account,
            to_account=to_account
        )

    @staticmethod
    def _move_money(unit: LedgerOperations, account_id1: int, amount1: int,
                    account_id2: int, amount2: int):
        """Apply two balance increments in the given order"""
        account1 = unit.add_account_balance(account_id1, amount1)
        account2 = unit.add_account_balance(account_id2, amount2)
        return account1, account2
