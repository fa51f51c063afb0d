"""Transaction API endpoints.

``GET /api/transactions`` runs an incremental Plaid sync for the signed-in
user and returns every stored transaction payload. Receipt endpoints
attach or detach a receipt image on a single transaction.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.auth import get_current_user
from api.plaid import _get_plaid_client
from database import get_db
from integrations.exceptions import ProviderAuthError, ProviderError
from integrations.plaid_client import PlaidClient
from models import User
from schemas.transaction import ReceiptAttachRequest, ReceiptResponse, TransactionListResponse
from services.exceptions import (
    LinkChangedError,
    NotLinkedError,
    StorageError,
    SyncInProgressError,
)
from services.receipt_service import ReceiptService
from services.transaction_sync_service import TransactionSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def get_transaction_sync_service(
    client: PlaidClient = Depends(_get_plaid_client),
) -> TransactionSyncService:
    """Dependency for injecting the sync service (overridable in tests)."""
    return TransactionSyncService(provider=client)


@router.get("", response_model=TransactionListResponse)
def sync_transactions(
    institution_id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sync_service: TransactionSyncService = Depends(get_transaction_sync_service),
):
    """Sync the user's linked institutions with Plaid and list their transactions.

    Args:
        institution_id: Restrict the sync to one linked institution.

    Returns:
        ``{"transactions": [...]}`` with Plaid payloads, most recent first

    Raises:
        HTTPException:
            - 404 Not Found: No linked institution
            - 409 Conflict: A sync for the same institution is still running,
              or the institution was re-linked mid-sync
            - 500 Internal Server Error: Storing the synced changes failed
            - 502 Bad Gateway: Plaid call failed or misbehaved
    """
    try:
        transactions = sync_service.reconcile(db, user.id, institution_id)

    except NotLinkedError as e:
        logger.info("Transaction sync requested without a link: %s", e)
        raise HTTPException(status_code=404, detail="No linked institution found")

    except SyncInProgressError:
        raise HTTPException(
            status_code=409,
            detail="Sync already in progress. Please wait for the current sync to complete.",
        )

    except LinkChangedError as e:
        logger.info("Transaction sync discarded: %s", e)
        raise HTTPException(
            status_code=409,
            detail="The institution was re-linked during sync. Please try again.",
        )

    except ProviderAuthError as e:
        logger.warning("Provider auth error during transaction sync: %s", e)
        raise HTTPException(
            status_code=502,
            detail=(
                f"{e.provider_name or 'Provider'} rejected the institution's credentials. "
                "Re-link the institution and try again."
            ),
        )

    except ProviderError as e:
        logger.warning("Provider error during transaction sync: %s", e)
        raise HTTPException(
            status_code=502,
            detail="A provider error occurred during sync. Check the logs for details.",
        )

    except StorageError as e:
        logger.error("Storage error during transaction sync: %s", e)
        raise HTTPException(
            status_code=500,
            detail="Failed to store synced transactions.",
        )

    except Exception:
        # Never expose str(e) for unexpected errors
        logger.error("Unexpected error during transaction sync", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred during sync.",
        )

    return TransactionListResponse(transactions=transactions)


@router.post("/{transaction_id}/receipt", response_model=ReceiptResponse)
def attach_receipt(
    transaction_id: str,
    body: ReceiptAttachRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Attach a receipt image (and its extracted text) to a transaction."""
    transaction = ReceiptService.get_transaction(db, user.id, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail=f"Transaction not found: {transaction_id}")

    try:
        receipt = ReceiptService.attach(db, user.id, transaction, body.image_path, body.text)
    except PermissionError:
        raise HTTPException(status_code=403, detail="Receipt belongs to another user")

    db.commit()
    db.refresh(receipt)
    return ReceiptResponse(
        transaction_id=transaction_id,
        image_path=receipt.image_path,
        text=receipt.text,
        created_at=receipt.created_at,
    )


@router.delete("/{transaction_id}/receipt")
def detach_receipt(
    transaction_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Remove the receipt reference from a transaction."""
    transaction = ReceiptService.get_transaction(db, user.id, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail=f"Transaction not found: {transaction_id}")

    if not ReceiptService.detach(db, transaction):
        raise HTTPException(status_code=404, detail="Transaction has no receipt")

    db.commit()
    return {"status": "ok", "transaction_id": transaction_id}
