# wizard.py
"""Four-step donation flow: confirmation, details, payment, success.

The wizard keeps a cart of wishlist items and the donor's details between
Streamlit reruns (it lives in st.session_state) and performs the remote
writes only when the donor confirms on the payment step.

Confirmation is not a transaction. The donation row is written first, the
wishlist's raised_amount second and the emails last. With the default
"read_modify_write" mode, two donors confirming against the same wishlist at
the same moment can both read the old raised_amount and one increment is
lost. The "atomic" mode pushes the addition into a single UPDATE instead.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

import db
import email_utils
from config import get_config
from errors import TransitionError, ValidationError

logger = logging.getLogger(__name__)


class Step(str, enum.Enum):
    CONFIRMATION = "confirmation"
    DETAILS = "details"
    PAYMENT = "payment"
    SUCCESS = "success"


STEPS = [Step.CONFIRMATION, Step.DETAILS, Step.PAYMENT, Step.SUCCESS]
STEP_PROGRESS = {Step.CONFIRMATION: 25, Step.DETAILS: 50, Step.PAYMENT: 75, Step.SUCCESS: 100}


@dataclass
class CartEntry:
    id: int
    price: float
    qty: int = 1
    name: Optional[str] = None

    @property
    def subtotal(self):
        return self.qty * self.price


@dataclass
class ConfirmationOutcome:
    donation_id: Optional[int] = None
    raised_amount: Optional[float] = None
    warnings: list = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self):
        return self.error is None


class DonationWizard:
    def __init__(self, wishlist, donor=None):
        self.wishlist = wishlist
        self.donor = donor
        self.step = Step.CONFIRMATION
        self.cart = []
        self.donor_name = donor.name if donor and donor.name else ""
        self.donor_email = donor.email if donor else ""
        self.message = ""
        self.anonymous = False
        self.outcome = None

    # -------------------------------
    # Cart
    # -------------------------------
    def is_selected(self, item_id):
        return any(entry.id == item_id for entry in self.cart)

    def toggle_item(self, item):
        """Adds the item with qty 1, or drops it (and its quantity) if already selected."""
        if self.is_selected(item.id):
            self.cart = [entry for entry in self.cart if entry.id != item.id]
        else:
            self.cart.append(CartEntry(id=item.id, price=item.price, qty=1, name=item.name))

    def set_quantity(self, item_id, qty):
        if qty < 1:
            raise ValidationError("Quantity must be at least 1", ["qty"])
        for entry in self.cart:
            if entry.id == item_id:
                entry.qty = int(qty)
                return entry
        raise ValidationError("Item is not selected", ["item"])

    @property
    def total(self):
        return sum(entry.qty * entry.price for entry in self.cart)

    @property
    def progress(self):
        return STEP_PROGRESS[self.step]

    # -------------------------------
    # Transitions
    # -------------------------------
    def can_advance(self):
        if self.step is Step.CONFIRMATION:
            return bool(self.cart)
        if self.step is Step.DETAILS:
            return bool(self.donor_name.strip() and self.donor_email.strip() and self.cart)
        return False

    def next_step(self):
        if self.step is Step.CONFIRMATION:
            if not self.cart:
                raise TransitionError("Select at least one item to continue")
        elif self.step is Step.DETAILS:
            if not self.donor_name.strip() or not self.donor_email.strip():
                raise TransitionError("Please fill in your name and email")
            if not self.cart:
                raise TransitionError("Select at least one item to continue")
        elif self.step is Step.PAYMENT:
            raise TransitionError("Confirm the payment to complete your donation")
        else:
            raise TransitionError("Donation already completed")
        self.step = STEPS[STEPS.index(self.step) + 1]
        return self.step

    def prev_step(self):
        if self.step in (Step.CONFIRMATION, Step.SUCCESS):
            return self.step
        self.step = STEPS[STEPS.index(self.step) - 1]
        return self.step

    # -------------------------------
    # Confirmation
    # -------------------------------
    def _donation_row(self, gateway, txn_id):
        single = self.cart[0].id if len(self.cart) == 1 else None
        return {
            "donor_id": self.donor.id if self.donor else None,
            "ngo_id": self.wishlist.ngo_id,
            "wishlist_id": self.wishlist.id,
            "wishlist_item_id": single,
            "items": [{"id": e.id, "qty": e.qty, "price": e.price} for e in self.cart],
            "amount": self.total,
            "gateway": gateway,
            "txn_id": txn_id,
            "status": "completed",
            "name": self.donor_name,
            "email": self.donor_email,
            "message": self.message,
            "anonymous": self.anonymous,
        }

    def _add_to_raised(self, amount, mode):
        if mode == "atomic":
            return db.increment_raised_amount(self.wishlist.id, amount)
        current = db.get_wishlist(self.wishlist.id)
        new_amount = (current.raised_amount or 0) + amount
        db.set_raised_amount(self.wishlist.id, new_amount)
        return new_amount

    def _send_emails(self, amount):
        warnings = []
        ngo_name = self.wishlist.ngo_name or "the NGO"
        result = email_utils.send_donation_confirmation_email(
            self.donor_email, self.donor_name, amount, self.wishlist.title, ngo_name
        )
        if not result.success:
            warnings.append(f"Confirmation email failed: {result.error}")
        if self.wishlist.ngo_contact_email:
            result = email_utils.send_ngo_donation_notification_email(
                self.wishlist.ngo_contact_email, ngo_name, self.donor_name, amount, self.wishlist.title
            )
            if not result.success:
                warnings.append(f"NGO notification email failed: {result.error}")
        return warnings

    def confirm(self, gateway="manual", txn_id=None, mode=None):
        """Records the donation and moves to SUCCESS.

        No payment signal is checked. If the raised_amount update fails the
        donation row is marked failed and the wizard stays on PAYMENT. Email
        failures only produce warnings.
        """
        if self.step is not Step.PAYMENT:
            raise TransitionError("Donation can only be confirmed from the payment step")
        if not self.cart:
            raise TransitionError("Select at least one item to continue")
        mode = mode or get_config().raised_amount_mode
        amount = self.total

        donation_id = db.create_donation(self._donation_row(gateway, txn_id))
        logger.info("Donation %s recorded for wishlist %s (%s)", donation_id, self.wishlist.id, amount)

        try:
            raised = self._add_to_raised(amount, mode)
        except Exception as e:
            logger.error("raised_amount update failed for wishlist %s: %s", self.wishlist.id, e)
            try:
                db.update_donation_status(donation_id, "failed")
            except Exception as comp_error:
                logger.error("Could not mark donation %s failed: %s", donation_id, comp_error)
            self.outcome = ConfirmationOutcome(donation_id=donation_id, error=f"Could not update the wishlist: {e}")
            return self.outcome

        warnings = self._send_emails(amount)
        for w in warnings:
            logger.warning(w)

        self.outcome = ConfirmationOutcome(donation_id=donation_id, raised_amount=raised, warnings=warnings)
        self.step = Step.SUCCESS
        return self.outcome

    def summary(self):
        return {
            "donor": self.donor_name,
            "email": self.donor_email,
            "amount": email_utils.format_amount(self.total),
            "ngo": self.wishlist.ngo_name,
            "wishlist": self.wishlist.title,
            "items": [{"name": e.name, "qty": e.qty, "subtotal": e.subtotal} for e in self.cart],
        }
