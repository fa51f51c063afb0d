"""SQLAlchemy ORM models."""

from .institution_link import InstitutionLink
from .receipt import Receipt
from .transaction import Transaction
from .user import User

__all__ = ["InstitutionLink", "Receipt", "Transaction", "User"]
