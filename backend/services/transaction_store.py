"""Transaction store - storage operations used by the transaction sync.

Exposes the narrow set of queries the reconciler needs: institution link
lookup, cursor persistence, application of a batch of provider changes,
and the ordered transaction listing. Methods only ``flush``; committing is
the caller's job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, exists, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from integrations.parsing_utils import parse_iso_datetime
from models import InstitutionLink, Transaction
from services.exceptions import LinkChangedError, NotLinkedError

logger = logging.getLogger(__name__)

_transactions = Transaction.__table__


@dataclass
class SyncChanges:
    """Changes accumulated across all pages of one sync, in arrival order."""

    cursor: str
    added: list[dict] = field(default_factory=list)
    modified: list[dict] = field(default_factory=list)
    removed: list[dict] = field(default_factory=list)
    pages: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


@dataclass
class ApplyResult:
    """Row counts from applying one SyncChanges batch."""

    inserted: int = 0
    skipped_duplicates: int = 0
    updated: int = 0
    missing_modified: int = 0
    deleted: int = 0
    missing_removed: int = 0


def transaction_timestamp(payload: dict) -> datetime | None:
    """Return the timestamp a transaction is ordered by.

    Uses the authorized date, falling back to the posted date when the
    institution does not report one.
    """
    return parse_iso_datetime(payload.get("authorized_date")) or parse_iso_datetime(
        payload.get("date")
    )


class TransactionStore:
    """Storage facade over InstitutionLink and Transaction rows for one session."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Institution links
    # ------------------------------------------------------------------

    def get_links(self, user_id: str) -> list[InstitutionLink]:
        """Return all of a user's institution links, oldest first."""
        return (
            self.db.query(InstitutionLink)
            .filter(InstitutionLink.user_id == user_id)
            .order_by(InstitutionLink.created_at, InstitutionLink.institution_id)
            .all()
        )

    def get_link(self, user_id: str, institution_id: str | None = None) -> InstitutionLink:
        """Return one institution link for the user.

        Without ``institution_id`` the user's oldest link is returned.

        Raises:
            NotLinkedError: If no matching link with an access token exists.
        """
        query = self.db.query(InstitutionLink).filter(InstitutionLink.user_id == user_id)
        if institution_id is not None:
            query = query.filter(InstitutionLink.institution_id == institution_id)
        link = query.order_by(InstitutionLink.created_at).first()
        if link is None or not link.access_token:
            raise NotLinkedError(user_id, institution_id)
        return link

    def set_cursor(
        self,
        user_id: str,
        institution_id: str,
        cursor: str,
        access_token: str | None = None,
    ) -> None:
        """Persist the sync cursor for a link.

        When ``access_token`` is given the cursor is only written if the link
        still holds that token. A cursor belongs to one Plaid Item and must
        never be stored against a different one.

        Raises:
            NotLinkedError: If the link no longer exists.
            LinkChangedError: If the link now holds a different access token.
        """
        conditions = [
            InstitutionLink.user_id == user_id,
            InstitutionLink.institution_id == institution_id,
        ]
        if access_token is not None:
            conditions.append(InstitutionLink.access_token == access_token)

        result = self.db.execute(
            update(InstitutionLink).where(*conditions).values(cursor=cursor)
        )
        if result.rowcount == 0:
            exists_now = self.db.execute(
                select(
                    exists().where(
                        InstitutionLink.user_id == user_id,
                        InstitutionLink.institution_id == institution_id,
                    )
                )
            ).scalar()
            if exists_now:
                raise LinkChangedError(user_id, institution_id)
            raise NotLinkedError(user_id, institution_id)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def apply_changes(
        self,
        user_id: str,
        institution_id: str,
        changes: SyncChanges,
    ) -> ApplyResult:
        """Apply added, modified and removed entries, in that order.

        Removals run last so a transaction added and removed within the
        same batch ends up deleted.
        """
        result = ApplyResult()

        for payload in changes.added:
            if self._insert_ignore(user_id, institution_id, payload):
                result.inserted += 1
            else:
                result.skipped_duplicates += 1
                logger.debug("Transaction %s already stored, skipping add", payload["transaction_id"])

        for payload in changes.modified:
            txn_id = payload["transaction_id"]
            updated = self.db.execute(
                update(_transactions)
                .where(
                    _transactions.c.id == txn_id,
                    _transactions.c.user_id == user_id,
                    _transactions.c.institution_id == institution_id,
                )
                .values(data=payload, timestamp=transaction_timestamp(payload))
            ).rowcount
            if updated:
                result.updated += 1
            else:
                result.missing_modified += 1
                logger.warning(
                    "Modified transaction %s has no stored row (user %s, institution %s), skipping",
                    txn_id, user_id, institution_id,
                )

        for entry in changes.removed:
            txn_id = entry["transaction_id"]
            deleted = self.db.execute(
                delete(_transactions).where(
                    _transactions.c.id == txn_id,
                    _transactions.c.user_id == user_id,
                    _transactions.c.institution_id == institution_id,
                )
            ).rowcount
            if deleted:
                result.deleted += 1
            else:
                result.missing_removed += 1
                logger.warning(
                    "Removed transaction %s has no stored row (user %s, institution %s), skipping",
                    txn_id, user_id, institution_id,
                )

        self.db.flush()
        return result

    def list_transactions(self, user_id: str) -> list[dict]:
        """Return every stored payload for the user, most recent first.

        Ties on timestamp are broken by transaction id; rows without a
        timestamp sort last.
        """
        rows = self.db.execute(
            select(_transactions.c.data)
            .where(_transactions.c.user_id == user_id)
            .order_by(_transactions.c.timestamp.desc().nulls_last(), _transactions.c.id)
        ).all()
        return [row.data for row in rows]

    def _insert_ignore(self, user_id: str, institution_id: str, payload: dict) -> bool:
        """Insert a transaction row unless its id is already stored.

        Returns:
            True if a row was inserted, False if the id already existed.
        """
        values = {
            "id": payload["transaction_id"],
            "user_id": user_id,
            "institution_id": institution_id,
            "timestamp": transaction_timestamp(payload),
            "data": payload,
            "image_path": None,
        }
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(_transactions).values(**values).on_conflict_do_nothing(
                index_elements=["id"]
            )
        elif dialect == "sqlite":
            stmt = sqlite.insert(_transactions).values(**values).on_conflict_do_nothing(
                index_elements=["id"]
            )
        else:
            already = self.db.execute(
                select(exists().where(_transactions.c.id == values["id"]))
            ).scalar()
            if already:
                return False
            stmt = insert(_transactions).values(**values)
        return self.db.execute(stmt).rowcount > 0
