"""External API integrations.

This package contains:
- Transaction provider protocol and cursor-based page iteration
- Plaid client: Link flow and /transactions/sync
- Provider exception hierarchy
"""

from integrations.plaid_client import PlaidClient
from integrations.transaction_provider import SyncPage, TransactionProvider, iter_sync_pages

__all__ = [
    "PlaidClient",
    "SyncPage",
    "TransactionProvider",
    "iter_sync_pages",
]
