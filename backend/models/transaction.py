"""Transaction model - a bank transaction synced from Plaid."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, ForeignKeyConstraint, Index, String
from sqlalchemy.orm import relationship

from database import Base


class Transaction(Base):
    """A transaction reported by Plaid for one linked institution.

    The primary key is Plaid's ``transaction_id``. ``data`` holds the full
    provider payload exactly as returned by the API; ``timestamp`` is
    denormalized from it for ordering. Rows are created, updated and
    deleted only by the transaction sync.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id", "institution_id"],
            ["institution_links.user_id", "institution_links.institution_id"],
            ondelete="CASCADE",
            name="fk_transactions_institution_link",
        ),
        Index("ix_transactions_user_timestamp", "user_id", "timestamp"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String(36), nullable=False)
    institution_id = Column(String, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=True)
    data = Column(JSON, nullable=False)
    image_path = Column(
        String, ForeignKey("receipts.image_path", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    institution_link = relationship("InstitutionLink", back_populates="transactions")
    receipt = relationship("Receipt", back_populates="transactions")
