"""Unit tests for ReceiptService."""

import pytest

from models import Receipt
from services.receipt_service import ReceiptService
from tests.fixtures import create_link, create_transaction


def test_get_transaction_scoped_to_user(db, institution_link, other_user):
    create_transaction(db, institution_link, "t1")

    assert ReceiptService.get_transaction(db, institution_link.user_id, "t1") is not None
    assert ReceiptService.get_transaction(db, other_user.id, "t1") is None


def test_attach_creates_receipt(db, institution_link):
    txn = create_transaction(db, institution_link, "t1")

    receipt = ReceiptService.attach(
        db, institution_link.user_id, txn, "receipts/t1.jpg", "TOTAL 12.50"
    )
    db.commit()

    assert txn.image_path == "receipts/t1.jpg"
    assert receipt.text == "TOTAL 12.50"
    assert receipt.user_id == institution_link.user_id


def test_attach_existing_receipt_to_second_transaction(db, institution_link, receipt):
    first = create_transaction(db, institution_link, "t1")
    second = create_transaction(db, institution_link, "t2")

    ReceiptService.attach(db, institution_link.user_id, first, receipt.image_path)
    ReceiptService.attach(db, institution_link.user_id, second, receipt.image_path)
    db.commit()

    assert db.query(Receipt).count() == 1
    assert receipt.text == "LUNCH 12.50"
    assert {t.id for t in receipt.transactions} == {"t1", "t2"}


def test_attach_updates_text(db, institution_link, receipt):
    txn = create_transaction(db, institution_link, "t1")

    ReceiptService.attach(db, institution_link.user_id, txn, receipt.image_path, "LUNCH 13.00")

    assert receipt.text == "LUNCH 13.00"


def test_attach_other_users_receipt_rejected(db, receipt, other_user):
    other_link = create_link(db, user_id=other_user.id)
    txn = create_transaction(db, other_link, "theirs")

    with pytest.raises(PermissionError):
        ReceiptService.attach(db, other_user.id, txn, receipt.image_path)

    assert txn.image_path is None


def test_detach(db, institution_link, receipt):
    txn = create_transaction(db, institution_link, "t1")
    ReceiptService.attach(db, institution_link.user_id, txn, receipt.image_path)

    assert ReceiptService.detach(db, txn) is True
    db.commit()

    assert txn.image_path is None
    assert db.get(Receipt, receipt.image_path) is not None


def test_detach_without_receipt(db, institution_link):
    txn = create_transaction(db, institution_link, "t1")
    assert ReceiptService.detach(db, txn) is False
