"""Receipt service - attaches receipt images to synced transactions."""

import logging

from sqlalchemy.orm import Session

from models import Receipt, Transaction

logger = logging.getLogger(__name__)


class ReceiptService:
    """Service for linking receipts to a user's transactions."""

    @staticmethod
    def get_transaction(db: Session, user_id: str, transaction_id: str) -> Transaction | None:
        """Get a transaction owned by the user, or None."""
        return (
            db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )

    @staticmethod
    def attach(
        db: Session,
        user_id: str,
        transaction: Transaction,
        image_path: str,
        text: str = "",
    ) -> Receipt:
        """Point a transaction at a receipt, creating or updating the receipt.

        Raises:
            PermissionError: If the image path is already registered to another user.
        """
        receipt = db.get(Receipt, image_path)
        if receipt is None:
            receipt = Receipt(image_path=image_path, text=text, user_id=user_id)
            db.add(receipt)
        elif receipt.user_id != user_id:
            raise PermissionError(f"Receipt {image_path} belongs to another user")
        elif text:
            receipt.text = text

        transaction.image_path = image_path
        db.flush()
        logger.info("Attached receipt %s to transaction %s", image_path, transaction.id)
        return receipt

    @staticmethod
    def detach(db: Session, transaction: Transaction) -> bool:
        """Clear a transaction's receipt reference.

        The receipt row itself is kept; other transactions may share it.

        Returns:
            True if a receipt was detached, False if none was attached.
        """
        if transaction.image_path is None:
            return False
        image_path = transaction.image_path
        transaction.image_path = None
        db.flush()
        logger.info("Detached receipt %s from transaction %s", image_path, transaction.id)
        return True
