"""Link service - manages the institutions a user has linked through Plaid Link."""

import logging

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from models import InstitutionLink, User

logger = logging.getLogger(__name__)


class LinkService:
    """Service for creating, listing and removing institution links."""

    @staticmethod
    def ensure_user(db: Session, user_id: str) -> User:
        """Return the local User row for an identity-provider user, creating it if needed."""
        user = db.get(User, user_id)
        if user is None:
            user = User(id=user_id)
            db.add(user)
            db.flush()
            logger.info("Recorded new user %s", user_id)
        return user

    @staticmethod
    def link_institution(
        db: Session,
        client: PlaidClient,
        user_id: str,
        public_token: str,
        institution_id: str,
        institution_name: str | None = None,
    ) -> InstitutionLink:
        """Exchange a Plaid Link public token and store the resulting link.

        Re-linking an institution the user already has replaces its access
        token and accounts snapshot. A new access token means a new Plaid
        Item, so the cursor is reset and the next sync starts from the
        full history.

        Raises:
            ProviderError: If the token exchange or accounts lookup fails.
        """
        result = client.exchange_public_token(public_token)
        access_token = result["access_token"]
        item_id = result["item_id"]
        accounts = client.get_accounts(access_token)

        LinkService.ensure_user(db, user_id)

        link = db.get(InstitutionLink, (user_id, institution_id))
        if link:
            if link.access_token != access_token:
                link.cursor = ""
            link.access_token = access_token
            link.item_id = item_id
            link.accounts = accounts
            if institution_name:
                link.institution_name = institution_name
            logger.info("Updated institution link %s for user %s", institution_id, user_id)
        else:
            link = InstitutionLink(
                user_id=user_id,
                institution_id=institution_id,
                item_id=item_id,
                access_token=access_token,
                institution_name=institution_name,
                cursor="",
                accounts=accounts,
            )
            db.add(link)
            logger.info(
                "Created institution link %s (%s) for user %s",
                institution_id, institution_name, user_id,
            )

        db.flush()
        return link

    @staticmethod
    def list_links(db: Session, user_id: str) -> list[InstitutionLink]:
        """List the user's institution links, newest first."""
        return (
            db.query(InstitutionLink)
            .filter(InstitutionLink.user_id == user_id)
            .order_by(InstitutionLink.created_at.desc())
            .all()
        )

    @staticmethod
    def unlink(
        db: Session,
        client: PlaidClient,
        user_id: str,
        institution_id: str,
    ) -> bool:
        """Revoke a link's access token with Plaid and delete it with its transactions.

        The local delete proceeds even if Plaid rejects the revocation.

        Returns:
            True if deleted, False if the user had no such link.
        """
        link = db.get(InstitutionLink, (user_id, institution_id))
        if link is None:
            return False

        try:
            client.remove_item(link.access_token)
        except ProviderError as e:
            logger.warning(
                "Failed to remove Plaid item remotely (removing locally anyway): %s", e
            )

        db.delete(link)
        db.flush()
        logger.info("Deleted institution link %s for user %s", institution_id, user_id)
        return True
