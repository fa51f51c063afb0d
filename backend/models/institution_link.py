"""InstitutionLink model - stores Plaid access tokens and sync cursors per linked institution."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base


class InstitutionLink(Base):
    """A financial institution linked by a user through Plaid Link.

    There is exactly one row per (user_id, institution_id). The cursor is
    Plaid's opaque ``/transactions/sync`` position; an empty string means
    the next sync fetches the full history.
    """

    __tablename__ = "institution_links"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    institution_id = Column(String, primary_key=True)
    item_id = Column(String, unique=True, index=True, nullable=False)
    access_token = Column(String, unique=True, nullable=False)
    institution_name = Column(String, nullable=True)
    cursor = Column(Text, nullable=False, default="", server_default="")
    accounts = Column(JSON, nullable=False, default=list)  # snapshot of the item's accounts
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="institution_links")
    transactions = relationship(
        "Transaction",
        back_populates="institution_link",
        cascade="all, delete-orphan",
    )
