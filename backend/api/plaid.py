"""Plaid Link API endpoints.

Provides the server-side endpoints for the Plaid Link browser-based
authentication flow: creating link tokens, exchanging public tokens,
and managing the signed-in user's institution links.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.auth import get_current_user
from database import get_db
from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from models import User
from services.link_service import LinkService
from services.transaction_sync_service import TransactionSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plaid", tags=["plaid"])


def _get_plaid_client() -> PlaidClient:
    """Dependency for injecting the Plaid client (overridable in tests)."""
    return PlaidClient()


# ------------------------------------------------------------------
# Request / Response schemas
# ------------------------------------------------------------------


class LinkTokenResponse(BaseModel):
    link_token: str


class ExchangeTokenRequest(BaseModel):
    public_token: str
    institution_id: str
    institution_name: str | None = None


class ExchangeTokenResponse(BaseModel):
    item_id: str
    institution_id: str
    institution_name: str | None = None
    account_count: int


class InstitutionLinkResponse(BaseModel):
    institution_id: str
    institution_name: str | None = None
    item_id: str
    accounts: list[dict]
    created_at: str | None = None
    syncing: bool = False


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


@router.post("/link-token", response_model=LinkTokenResponse)
def create_link_token(
    user: User = Depends(get_current_user),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Create a Plaid Link token for the frontend."""
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="Plaid is not configured")

    try:
        link_token = client.create_link_token(user.id)
        return LinkTokenResponse(link_token=link_token)
    except ProviderError as e:
        error_detail = str(e)
        # Surface actionable hint for the most common error
        if "INVALID_API_KEYS" in error_detail:
            hint = (
                "Plaid rejected the credentials. Check that PLAID_ENVIRONMENT "
                "matches your keys (sandbox or production). "
                "Each environment has different secrets."
            )
            logger.error("Plaid INVALID_API_KEYS: %s", hint)
            raise HTTPException(status_code=400, detail=hint)
        logger.error("Failed to create Plaid link token: %s", e)
        raise HTTPException(status_code=502, detail="Failed to create link token")


@router.post("/exchange-token", response_model=ExchangeTokenResponse)
def exchange_token(
    body: ExchangeTokenRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Exchange a Plaid Link public_token and store the resulting institution link."""
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="Plaid is not configured")

    try:
        link = LinkService.link_institution(
            db,
            client,
            user.id,
            body.public_token,
            body.institution_id,
            body.institution_name,
        )
    except ProviderError as e:
        logger.error("Failed to exchange Plaid token: %s", e)
        raise HTTPException(status_code=502, detail="Failed to exchange token")

    db.commit()

    return ExchangeTokenResponse(
        item_id=link.item_id,
        institution_id=link.institution_id,
        institution_name=link.institution_name,
        account_count=len(link.accounts or []),
    )


@router.get("/links", response_model=list[InstitutionLinkResponse])
def list_links(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the signed-in user's linked institutions and whether each is syncing."""
    links = LinkService.list_links(db, user.id)
    return [
        InstitutionLinkResponse(
            institution_id=link.institution_id,
            institution_name=link.institution_name,
            item_id=link.item_id,
            accounts=link.accounts or [],
            created_at=link.created_at.isoformat() if link.created_at else None,
            syncing=TransactionSyncService.is_sync_in_progress(user.id, link.institution_id),
        )
        for link in links
    ]


@router.delete("/links/{institution_id}")
def remove_link(
    institution_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Remove a linked institution (revokes token with Plaid, then deletes locally)."""
    if not LinkService.unlink(db, client, user.id, institution_id):
        raise HTTPException(status_code=404, detail=f"Link not found: {institution_id}")

    db.commit()
    return {"status": "ok", "institution_id": institution_id}
