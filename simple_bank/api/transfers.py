"""
Transfer endpoints
"""

from fastapi import APIRouter, Depends, Path

from .auth import BankingSystem, get_banking_system, get_current_user
from .schemas import TransferRequest


router = APIRouter()


@router.post("")
def create_transfer(
    request: TransferRequest,
    username: str = Depends(get_current_user),
    system: BankingSystem = Depends(get_banking_system)
):
    """Move money from an account the caller owns to another account"""
    result = system.transfer_processor.transfer(
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount=request.amount,
        currency=request.currency,
        acting_owner=username
    )
    return result.to_dict()


@router.get("/{transfer_id}")
def get_transfer(
    transfer_id: int = Path(..., ge=1),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get a transfer record"""
    return system.account_manager.get_transfer(transfer_id).to_dict()
