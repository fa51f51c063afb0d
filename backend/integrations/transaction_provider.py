"""Transaction provider protocol and cursor-based page iteration.

A transaction provider exposes one incremental sync call: given an access
token and a cursor it returns the next page of changes (added, modified,
removed) together with the cursor to resume from and whether more pages
are pending.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Protocol

from integrations.exceptions import ProviderDataError


@dataclass
class SyncPage:
    """One page of a provider's incremental transaction sync.

    ``added`` and ``modified`` entries are full transaction payloads (dicts
    carrying at least ``transaction_id``). ``removed`` entries carry only
    ``transaction_id``.
    """

    next_cursor: str
    has_more: bool
    added: list[dict] = field(default_factory=list)
    modified: list[dict] = field(default_factory=list)
    removed: list[dict] = field(default_factory=list)


class TransactionProvider(Protocol):
    """Protocol for clients that support cursor-based transaction sync."""

    @property
    def provider_name(self) -> str:
        ...

    def sync_transactions(self, access_token: str, cursor: str) -> SyncPage:
        """Fetch the page of changes following ``cursor``.

        Raises:
            ProviderError: If the call fails or the response is malformed.
        """
        ...


def iter_sync_pages(
    provider: TransactionProvider,
    access_token: str,
    cursor: str,
) -> Iterator[SyncPage]:
    """Yield sync pages lazily, following ``next_cursor`` until ``has_more`` is false.

    Each request depends on the previous page's cursor, so the iterator is
    strictly sequential and cannot be restarted; callers that stop early
    simply stop pulling.
    """
    while True:
        page = provider.sync_transactions(access_token, cursor)
        if not page.next_cursor and page.has_more:
            raise ProviderDataError(
                "Sync page reported has_more without a next_cursor",
                provider_name=provider.provider_name,
            )
        yield page
        if not page.has_more:
            return
        cursor = page.next_cursor
