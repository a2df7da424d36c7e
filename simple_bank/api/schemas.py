"""
Pydantic schemas for API requests
"""

from pydantic import BaseModel, Field, field_validator

from ..currency import is_supported_currency


def _check_currency(value: str) -> str:
    if not is_supported_currency(value):
        raise ValueError(f"unsupported currency: {value}")
    return value.upper()


class CreateAccountRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    currency: str = Field(..., description="Currency code (USD, EUR, CAD)")
    balance: int = Field(0, ge=0, description="Opening balance in minor units")

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str) -> str:
        return _check_currency(value)


class TransferRequest(BaseModel):
    from_account_id: int = Field(..., ge=1)
    to_account_id: int = Field(..., ge=1)
    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field(..., description="Currency code both accounts must hold")

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str) -> str:
        return _check_currency(value)
