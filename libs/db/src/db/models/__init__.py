"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the account/category/transaction models written by
``statement_import``.
"""

from .finance import Account, Base, Category, Transaction

__all__ = [
    "Base",
    "Account",
    "Category",
    "Transaction",
]
