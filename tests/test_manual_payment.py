import re
from unittest.mock import patch

import pytest

import db
import manual_payment
from errors import ValidationError
from manual_payment import BankDetailsForm

FULL_BANK = {
    "account_holder_name": "Helping Hands Trust",
    "account_number": "1234567890",
    "ifsc_code": "SBIN0001234",
    "bank_name": "State Bank",
    "branch_name": "MG Road",
}


def test_full_bank_details_are_accepted():
    BankDetailsForm(**FULL_BANK).validate()


def test_upi_with_qr_is_accepted(upload):
    BankDetailsForm(upi_id="hands@upi", qr_file=upload("qr.png")).validate()


def test_empty_form_asks_for_either_option():
    """Should reject a form with neither bank nor UPI details."""
    with pytest.raises(ValidationError, match="Please fill either Bank Account Details OR UPI/QR Code details"):
        BankDetailsForm().validate()


def test_partial_bank_lists_every_missing_field():
    """Should name each missing bank field, in form order."""
    form = BankDetailsForm(account_holder_name="Helping Hands Trust", bank_name="State Bank")

    with pytest.raises(ValidationError) as exc:
        form.validate()

    assert exc.value.missing_fields == ["Account Number", "IFSC Code", "Branch Name"]
    assert str(exc.value) == "Please fill/select the following fields: Account Number, IFSC Code, Branch Name"


def test_blank_strings_count_as_missing():
    form = BankDetailsForm(**{**FULL_BANK, "ifsc_code": "   "})

    with pytest.raises(ValidationError) as exc:
        form.validate()

    assert exc.value.missing_fields == ["IFSC Code"]


@pytest.mark.parametrize(
    "kwargs, missing",
    [
        ({"upi_id": "hands@upi"}, ["QR Code Image"]),
        ({"qr_file": object()}, ["UPI ID"]),
    ],
)
def test_partial_upi_lists_missing_field(kwargs, missing):
    with pytest.raises(ValidationError) as exc:
        BankDetailsForm(**kwargs).validate()

    assert exc.value.missing_fields == missing


def test_complete_bank_with_partial_upi_is_rejected():
    """Should still require the QR image once a UPI id is typed."""
    with pytest.raises(ValidationError) as exc:
        BankDetailsForm(**FULL_BANK, upi_id="hands@upi").validate()

    assert exc.value.missing_fields == ["QR Code Image"]


def test_save_bank_details_uploads_qr_and_upserts(ngo, upload, app_env):
    """Should store the QR under qr_codes/<ngo_id>/qr_<millis>.<ext> and keep one row per NGO."""
    # Arrange
    form = BankDetailsForm(upi_id="hands@upi", qr_file=upload("MyQR.PNG", b"png-bytes"), payment_methods='{"upi": true}')

    # Act
    saved = manual_payment.save_bank_details(ngo.id, form)
    manual_payment.save_bank_details(ngo.id, BankDetailsForm(**FULL_BANK, payment_methods="not json"))

    # Assert
    assert re.fullmatch(rf"http://files\.test/storage/qr_codes/{ngo.id}/qr_\d+\.png", saved.qr_code_url)
    assert saved.payment_methods == {"upi": True}
    assert saved.has_upi
    stored = list((app_env / "storage" / "qr_codes" / str(ngo.id)).iterdir())
    assert [p.read_bytes() for p in stored] == [b"png-bytes"]

    current = manual_payment.get_settlement_details(ngo.id)
    assert current.has_bank_account
    assert current.upi_id == ""
    assert current.payment_methods is None


def test_save_bank_details_validates_first(ngo):
    with pytest.raises(ValidationError):
        manual_payment.save_bank_details(ngo.id, BankDetailsForm(bank_name="State Bank"))
    assert db.get_bank_details(ngo.id) is None


def test_record_manual_donation_is_completed(ngo):
    """Should insert a completed donation with no gateway confirmation."""
    donation_id = manual_payment.record_manual_donation("500", "Jane", "jane@x.com", ngo_id=ngo.id)

    donation = db.get_donation(donation_id)
    assert donation.status == "completed"
    assert donation.amount == 500
    assert donation.gateway == "manual"
    assert donation.txn_id is None
    assert donation.ngo_name == "Helping Hands"


@pytest.mark.parametrize(
    "amount, name, email, missing",
    [
        (0, "Jane", "jane@x.com", ["amount"]),
        (100, "", "jane@x.com", ["name"]),
        (None, "Jane", None, ["amount", "email"]),
    ],
)
def test_record_manual_donation_requires_fields(amount, name, email, missing):
    with pytest.raises(ValidationError, match="Please fill all required fields") as exc:
        manual_payment.record_manual_donation(amount, name, email)

    assert exc.value.missing_fields == missing


def test_upload_qr_code_replaces_same_name(ngo, upload, app_env):
    """Should let a re-saved QR code overwrite the stored one."""
    with patch("storage.timestamped_name", return_value="qr_1700000000000.png"):
        manual_payment.upload_qr_code(ngo.id, upload("qr.png", b"old"))
        url = manual_payment.upload_qr_code(ngo.id, upload("qr.png", b"new"))

    assert url == f"http://files.test/storage/qr_codes/{ngo.id}/qr_1700000000000.png"
    assert (app_env / "storage" / "qr_codes" / str(ngo.id) / "qr_1700000000000.png").read_bytes() == b"new"
