"""Transaction sync service - reconciles stored transactions with Plaid.

For each institution link the service pulls every pending page from the
provider's cursor-based sync, folds the pages into one SyncChanges batch,
and only then applies the batch together with the new cursor in a single
database transaction. A failure at any point leaves the link's cursor and
transactions exactly as they were, so the next sync simply retries from
the old cursor.
"""

import logging
import time
from collections.abc import Iterable
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderDataError, ProviderPaginationError
from integrations.transaction_provider import SyncPage, TransactionProvider, iter_sync_pages
from models import InstitutionLink
from services.exceptions import (
    LinkChangedError,
    NotLinkedError,
    StorageError,
    SyncInProgressError,
)
from services.transaction_store import ApplyResult, SyncChanges, TransactionStore
from utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)


class TransactionSyncService:
    """Service for syncing a user's transactions from their linked institutions."""

    # Class-level registry shared across all instances so that two requests
    # for the same (user, institution) never sync at the same time.
    _link_locks = KeyedLock()

    def __init__(
        self,
        provider: TransactionProvider,
        max_pages: Optional[int] = None,
        max_seconds: Optional[float] = None,
        lock_timeout: Optional[float] = None,
    ):
        """Initialize with the transaction provider and optional sync bounds.

        Args:
            provider: Client implementing ``sync_transactions``.
            max_pages: Page bound per link (default ``SYNC_MAX_PAGES``).
            max_seconds: Elapsed-time bound per link (default ``SYNC_MAX_SECONDS``).
            lock_timeout: Seconds to wait for a busy link
                (default ``SYNC_LOCK_TIMEOUT_SECONDS``).
        """
        self._provider = provider
        self._max_pages = max_pages if max_pages is not None else settings.SYNC_MAX_PAGES
        self._max_seconds = max_seconds if max_seconds is not None else settings.SYNC_MAX_SECONDS
        self._lock_timeout = (
            lock_timeout if lock_timeout is not None else settings.SYNC_LOCK_TIMEOUT_SECONDS
        )

    @classmethod
    def is_sync_in_progress(cls, user_id: str, institution_id: str) -> bool:
        """Check if a sync for this link is currently running."""
        return cls._link_locks.is_locked((user_id, institution_id))

    def reconcile(
        self,
        db: Session,
        user_id: str,
        institution_id: str | None = None,
    ) -> list[dict]:
        """Sync the user's linked institution(s) and return all their transactions.

        Args:
            db: Database session
            user_id: Authenticated user id
            institution_id: Sync only this link; all of the user's links if None

        Returns:
            Transaction payloads for the user, most recent first

        Raises:
            NotLinkedError: The user has no (matching) institution link.
                No provider call is made.
            SyncInProgressError: Another sync held the link past the lock timeout.
            LinkChangedError: The link was re-linked while its sync ran; nothing
                was written for it.
            ProviderError: The provider call failed, returned malformed data,
                or exceeded the page/time bound.
            StorageError: Applying the changes failed; nothing was written.
        """
        store = TransactionStore(db)

        if institution_id is not None:
            links = [store.get_link(user_id, institution_id)]
        else:
            links = [link for link in store.get_links(user_id) if link.access_token]
            if not links:
                raise NotLinkedError(user_id)

        for link in links:
            self.sync_link(db, link)

        return store.list_transactions(user_id)

    def sync_link(self, db: Session, link: InstitutionLink) -> ApplyResult:
        """Fetch and apply all pending changes for one institution link.

        The stored cursor is re-read after the lock is acquired so a sync
        that waited on another one resumes from the cursor it left behind.
        """
        # Primary key from the identity map; the row may already be gone
        user_id, institution_id = inspect(link).identity
        key = (user_id, institution_id)

        if not self._link_locks.acquire(key, timeout=self._lock_timeout):
            logger.warning(
                "Sync blocked: user %s, institution %s already syncing",
                user_id, institution_id,
            )
            raise SyncInProgressError(user_id, institution_id)

        try:
            try:
                db.refresh(link)
            except InvalidRequestError as e:
                # Link was removed while waiting for the lock
                raise NotLinkedError(user_id, institution_id) from e
            access_token = link.access_token
            logger.info(
                "Transaction sync started: user %s, institution %s, cursor %s",
                user_id, institution_id, "<empty>" if not link.cursor else "<stored>",
            )
            changes = self.fold_pages(
                iter_sync_pages(self._provider, access_token, link.cursor or ""),
                start_cursor=link.cursor or "",
            )
            result = self._apply(db, user_id, institution_id, access_token, changes)
            logger.info(
                "Transaction sync finished: user %s, institution %s, %d pages, "
                "%d inserted (%d duplicate), %d updated (%d missing), %d deleted (%d missing)",
                user_id, institution_id, changes.pages,
                result.inserted, result.skipped_duplicates,
                result.updated, result.missing_modified,
                result.deleted, result.missing_removed,
            )
            return result
        finally:
            self._link_locks.release(key)

    def fold_pages(self, pages: Iterable[SyncPage], start_cursor: str = "") -> SyncChanges:
        """Accumulate sync pages into a single SyncChanges batch.

        Stops at the first page with ``has_more`` false.

        Raises:
            ProviderPaginationError: More than ``max_pages`` pages, or more
                than ``max_seconds`` elapsed, before the last page.
            ProviderDataError: An entry has no ``transaction_id``.
        """
        changes = SyncChanges(cursor=start_cursor)
        started = time.monotonic()
        provider_name = self._provider.provider_name

        for page in pages:
            changes.pages += 1
            for entries in (page.added, page.modified, page.removed):
                _check_entries(entries, provider_name)
            changes.added.extend(page.added)
            changes.modified.extend(page.modified)
            changes.removed.extend(page.removed)
            changes.cursor = page.next_cursor

            if not page.has_more:
                break
            if changes.pages >= self._max_pages:
                raise ProviderPaginationError(
                    f"Sync did not finish within {self._max_pages} pages",
                    provider_name=provider_name,
                    pages_fetched=changes.pages,
                )
            if time.monotonic() - started > self._max_seconds:
                raise ProviderPaginationError(
                    f"Sync did not finish within {self._max_seconds:g} seconds",
                    provider_name=provider_name,
                    pages_fetched=changes.pages,
                )

        return changes

    def _apply(
        self,
        db: Session,
        user_id: str,
        institution_id: str,
        access_token: str,
        changes: SyncChanges,
    ) -> ApplyResult:
        """Write the cursor and changes for one link atomically.

        Nothing is written if the link was removed, or re-linked to a new
        access token, after the pages were fetched.
        """
        store = TransactionStore(db)
        try:
            store.set_cursor(user_id, institution_id, changes.cursor, access_token=access_token)
            result = store.apply_changes(user_id, institution_id, changes)
            db.commit()
        except NotLinkedError:
            # Link was removed while syncing
            db.rollback()
            raise
        except LinkChangedError:
            db.rollback()
            logger.warning(
                "Discarding sync for user %s, institution %s: re-linked during sync",
                user_id, institution_id,
            )
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Applying sync changes failed for user %s, institution %s: %s",
                user_id, institution_id, e, exc_info=True,
            )
            raise StorageError(
                f"Failed to store synced transactions for institution {institution_id}"
            ) from e
        return result


def _check_entries(entries: list[dict], provider_name: str) -> None:
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("transaction_id"):
            raise ProviderDataError(
                f"Sync entry without transaction_id: {entry!r}",
                provider_name=provider_name,
            )
