"""API route handlers."""
from . import auth, plaid, transactions

__all__ = ["auth", "plaid", "transactions"]
