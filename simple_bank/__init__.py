"""
Simple Bank

Accounts, an append-only entry ledger and atomic money transfers between
accounts, safe under concurrent access.
"""

__version__ = "1.0.0"
