"""Receipt model - a receipt image attached to one or more transactions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base


class Receipt(Base):
    """A receipt image owned by a user, keyed by its storage path."""

    __tablename__ = "receipts"

    image_path = Column(String, primary_key=True)
    text = Column(Text, nullable=False, default="", server_default="")  # extracted text
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="receipts")
    transactions = relationship("Transaction", back_populates="receipt")
