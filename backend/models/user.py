"""User model - local record of an identity-provider user."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base


class User(Base):
    """A user known to the identity provider.

    The id is the provider-issued UUID (the JWT ``sub`` claim). Rows are
    recorded on first authenticated request, never created by sync.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    institution_links = relationship(
        "InstitutionLink", back_populates="user", cascade="all, delete-orphan"
    )
    receipts = relationship("Receipt", back_populates="user")
