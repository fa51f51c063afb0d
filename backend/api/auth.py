"""Authentication dependency.

Sign-up, passwords and sessions live with the identity provider
(Supabase). The backend only verifies the provider's HS256 access tokens
and records the user locally the first time it sees them.
"""

import logging

from fastapi import Depends, Header, HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models import User
from services.link_service import LinkService

logger = logging.getLogger(__name__)

_ALGORITHMS = ["HS256"]


def decode_access_token(token: str, secret: str) -> dict:
    """Verify an identity-provider access token and return its claims.

    Raises:
        HTTPException: 401 if the token is expired, malformed, or unsigned
            by ``secret``, or carries no ``sub`` claim.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=_ALGORITHMS,
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token payload: missing user ID")
    return payload


def get_current_user(
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency that resolves the signed-in user from a Bearer token."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Authorization header missing")

    if not settings.SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not configured; rejecting request")
        raise HTTPException(status_code=401, detail="Authentication is not configured")

    token = authorization[len("bearer "):].strip()
    payload = decode_access_token(token, settings.SUPABASE_JWT_SECRET)

    user = LinkService.ensure_user(db, payload["sub"])
    db.commit()
    return user
