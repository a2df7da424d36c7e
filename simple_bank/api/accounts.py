"""
Account endpoints
"""

from fastapi import APIRouter, Depends, Path, Query, status

from ..errors import ForbiddenError
from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import CreateAccountRequest


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    username: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Open an account for the authenticated user"""
    if request.owner != username:
        raise ForbiddenError("Cannot open an account for another user")

    account = system.account_manager.create_account(
        owner=request.owner,
        currency=request.currency,
        balance=request.balance
    )
    return account.to_dict()


@router.get("/{account_id}")
def get_account(
    account_id: int = Path(..., ge=1),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get account details"""
    return system.account_manager.get_account(account_id).to_dict()


@router.get("/{account_id}/entries")
def get_account_entries(
    account_id: int = Path(..., ge=1),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    system: BankingSystem = Depends(get_banking_system)
):
    """Ledger entries of an account"""
    entries = system.account_manager.get_account_entries(account_id, limit=limit, offset=offset)
    return {"entries": [entry.to_dict() for entry in entries]}
