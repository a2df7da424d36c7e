"""
Currency Support Module

ISO 4217 currency codes accepted by the bank. All balances and amounts are
integers in minor units (cents), so no conversion or rounding ever happens
here.
"""

from enum import Enum


class Currency(Enum):
    """Supported ISO 4217 currency codes with minor-unit precision"""
    USD = ("USD", 2)  # US Dollar
    EUR = ("EUR", 2)  # Euro
    CAD = ("CAD", 2)  # Canadian Dollar

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its three-letter code"""
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency: {code}")


def is_supported_currency(code: str) -> bool:
    """Check whether a currency code is accepted"""
    return isinstance(code, str) and code.upper() in Currency.__members__
