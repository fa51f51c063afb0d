"""Pydantic schemas for transactions and receipts."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class TransactionListResponse(BaseModel):
    """Transaction payloads as returned by Plaid, most recent first."""

    transactions: list[dict[str, Any]]


class ReceiptAttachRequest(BaseModel):
    """Request body for attaching a receipt to a transaction."""

    image_path: str = Field(min_length=1, max_length=1024)
    text: str = ""


class ReceiptResponse(BaseModel):
    """Response schema for a receipt attached to a transaction."""

    transaction_id: str
    image_path: str
    text: str
    created_at: Optional[datetime] = None
