"""Test fixtures and sample data."""
import pytest
from sqlalchemy.orm import Session

from models import InstitutionLink, Receipt, Transaction, User
from services.transaction_store import transaction_timestamp

TEST_USER_ID = "4f1c2d3e-0000-4000-8000-000000000001"
OTHER_USER_ID = "4f1c2d3e-0000-4000-8000-000000000002"


def make_plaid_transaction(
    transaction_id: str,
    authorized_date: str | None = "2026-01-15",
    amount: float = 12.5,
    name: str = "Coffee Shop",
    account_id: str = "acc_checking",
    **extra,
) -> dict:
    """Build a Plaid /transactions/sync ``added``/``modified`` entry."""
    payload = {
        "transaction_id": transaction_id,
        "account_id": account_id,
        "amount": amount,
        "iso_currency_code": "USD",
        "authorized_date": authorized_date,
        "date": authorized_date or "2026-01-16",
        "name": name,
        "merchant_name": None,
        "pending": False,
        "payment_channel": "in store",
    }
    payload.update(extra)
    return payload


def make_removed(transaction_id: str) -> dict:
    """Build a Plaid /transactions/sync ``removed`` entry."""
    return {"transaction_id": transaction_id}


def create_link(
    db: Session,
    user_id: str = TEST_USER_ID,
    institution_id: str = "ins_109508",
    cursor: str = "",
    access_token: str | None = None,
    institution_name: str = "First Platypus Bank",
) -> InstitutionLink:
    """Create an InstitutionLink (and its User if missing)."""
    if db.get(User, user_id) is None:
        db.add(User(id=user_id))
        db.flush()
    link = InstitutionLink(
        user_id=user_id,
        institution_id=institution_id,
        item_id=f"item-{user_id[-4:]}-{institution_id}",
        access_token=access_token or f"access-sandbox-{user_id[-4:]}-{institution_id}",
        institution_name=institution_name,
        cursor=cursor,
        accounts=[{"account_id": "acc_checking", "name": "Plaid Checking", "mask": "0000"}],
    )
    db.add(link)
    db.commit()
    return link


def create_transaction(
    db: Session,
    link: InstitutionLink,
    transaction_id: str,
    authorized_date: str | None = "2026-01-15",
    **extra,
) -> Transaction:
    """Store a transaction row for a link, as the sync would."""
    payload = make_plaid_transaction(transaction_id, authorized_date, **extra)
    txn = Transaction(
        id=transaction_id,
        user_id=link.user_id,
        institution_id=link.institution_id,
        timestamp=transaction_timestamp(payload),
        data=payload,
    )
    db.add(txn)
    db.commit()
    return txn


@pytest.fixture
def user(db):
    """Create the signed-in test user."""
    u = User(id=TEST_USER_ID)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def other_user(db):
    """Create a second user."""
    u = User(id=OTHER_USER_ID)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def institution_link(db, user):
    """Create an institution link for the test user with an empty cursor."""
    return create_link(db, user_id=user.id)


@pytest.fixture
def receipt(db, user):
    """Create a receipt owned by the test user."""
    r = Receipt(image_path=f"receipts/{user.id}/lunch.jpg", text="LUNCH 12.50", user_id=user.id)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r
