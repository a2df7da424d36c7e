"""
Banking system container and authentication dependencies
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..accounts import AccountManager
from ..config import BankConfig
from ..errors import UnauthorizedError
from ..logging_config import get_logger, log_action
from ..storage import LedgerStore, create_store
from ..tokens import ExpiredTokenError, InvalidTokenError, JWTMaker
from ..transfers import TransferProcessor


logger = get_logger("simple_bank.api")

security = HTTPBearer(auto_error=False)


class BankingSystem:
    """Core banking components wired to one ledger store"""

    def __init__(self, config: BankConfig, store: Optional[LedgerStore] = None):
        self.config = config
        self.store = store or create_store(config)
        self.account_manager = AccountManager(self.store)
        self.transfer_processor = TransferProcessor(self.store, config)
        self.token_maker = JWTMaker(config.token_symmetric_key)

    def close(self) -> None:
        self.store.close()


def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.banking_system


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> str:
    """Dependency that validates the bearer token and returns the username"""
    if not credentials:
        raise UnauthorizedError("Not authenticated")
    try:
        payload = system.token_maker.verify_token(credentials.credentials)
    except ExpiredTokenError:
        raise UnauthorizedError("Token expired")
    except InvalidTokenError:
        log_action(logger, "warning", "Rejected invalid access token",
                   action="auth_failed", resource="auth")
        raise UnauthorizedError("Invalid token")
    return payload.username
