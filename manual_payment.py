# manual_payment.py
"""NGO settlement details (bank account or UPI + QR) and manual donations.

Manual donations are recorded as completed the moment the donor says they
paid. Nothing checks that money moved.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any

import db
import storage
from errors import ValidationError

logger = logging.getLogger(__name__)

BANK_FIELDS = [
    ("account_holder_name", "Account Holder Name"),
    ("account_number", "Account Number"),
    ("ifsc_code", "IFSC Code"),
    ("bank_name", "Bank Name"),
    ("branch_name", "Branch Name"),
]


@dataclass
class BankDetailsForm:
    account_holder_name: str = ""
    account_number: str = ""
    ifsc_code: str = ""
    bank_name: str = ""
    branch_name: str = ""
    upi_id: str = ""
    qr_file: Any = None
    donation_link: str = ""
    payment_methods: str = "{}"

    def _filled(self, name):
        value = getattr(self, name)
        if isinstance(value, str):
            return bool(value.strip())
        return value is not None

    def missing_fields(self):
        missing = []
        if any(self._filled(name) for name, _ in BANK_FIELDS):
            missing += [label for name, label in BANK_FIELDS if not self._filled(name)]
        if self._filled("upi_id") or self._filled("qr_file"):
            if not self._filled("upi_id"):
                missing.append("UPI ID")
            if not self._filled("qr_file"):
                missing.append("QR Code Image")
        return missing

    def validate(self):
        """Raises ValidationError unless a full bank account or UPI id + QR image is given.

        Whichever group is partially filled must be completed, so a full bank
        account with only a UPI id still fails on the QR image.
        """
        bank_complete = all(self._filled(name) for name, _ in BANK_FIELDS)
        upi_complete = self._filled("upi_id") and self._filled("qr_file")
        missing = self.missing_fields()
        if not bank_complete and not upi_complete and not missing:
            raise ValidationError("Please fill either Bank Account Details OR UPI/QR Code details")
        if missing:
            raise ValidationError(
                f"Please fill/select the following fields: {', '.join(missing)}", missing
            )

    def parsed_payment_methods(self):
        # malformed JSON is stored as NULL
        try:
            return json.loads(self.payment_methods) if self.payment_methods else None
        except ValueError:
            return None


def upload_qr_code(ngo_id, qr_file):
    return storage.upload_file("qr_codes", str(ngo_id), "qr", qr_file, upsert=True)


def save_bank_details(ngo_id, form: BankDetailsForm):
    form.validate()
    qr_url = upload_qr_code(ngo_id, form.qr_file) if form.qr_file is not None else None
    details = db.upsert_bank_details(ngo_id, {
        "account_holder_name": form.account_holder_name,
        "account_number": form.account_number,
        "ifsc_code": form.ifsc_code,
        "bank_name": form.bank_name,
        "branch_name": form.branch_name,
        "upi_id": form.upi_id,
        "qr_code_url": qr_url,
        "donation_link": form.donation_link or None,
        "payment_methods": form.parsed_payment_methods(),
    })
    logger.info("NGO bank details saved for ngo %s", ngo_id)
    return details


def get_settlement_details(ngo_id):
    """Bank details to show a donor, or None when the NGO has none on file."""
    return db.get_bank_details(ngo_id)


def record_manual_donation(amount, name, email, ngo_id=None, donor_id=None,
                           wishlist_id=None, message=None) -> int:
    missing = [label for label, value in (("amount", amount), ("name", name), ("email", email)) if not value]
    if missing:
        raise ValidationError("Please fill all required fields", missing)
    donation_id = db.create_donation({
        "donor_id": donor_id,
        "ngo_id": ngo_id,
        "wishlist_id": wishlist_id,
        "amount": float(amount),
        "gateway": "manual",
        "status": "completed",
        "name": name,
        "email": email,
        "message": message,
    })
    logger.info("Manual donation %s recorded (%s)", donation_id, amount)
    return donation_id
