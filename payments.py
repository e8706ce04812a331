# payments.py
import datetime
import enum
import logging
import random
import time

import db
from config import get_config
from errors import Result

logger = logging.getLogger(__name__)


class Gateway(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    RAZORPAY = "razorpay"


PAYMENT_METHODS = [
    {"id": Gateway.STRIPE, "name": "Credit/Debit Card", "description": "Secure payment via Stripe", "currency": "USD"},
    {"id": Gateway.PAYPAL, "name": "PayPal", "description": "Pay with your PayPal account", "currency": "USD"},
    {"id": Gateway.RAZORPAY, "name": "Razorpay", "description": "Popular Indian payment gateway", "currency": "INR"},
]


def gateway_config(gateway, config=None):
    config = config or get_config()
    gateway = Gateway(gateway)
    if gateway is Gateway.STRIPE:
        return {"publishableKey": config.stripe_publishable_key, "currency": "USD"}
    if gateway is Gateway.PAYPAL:
        return {"clientId": config.paypal_client_id, "currency": "USD"}
    return {"keyId": config.razorpay_key_id, "currency": "INR"}


def _millis():
    return int(datetime.datetime.utcnow().timestamp() * 1000)


def mock_create_intent(amount, gateway, delay=None):
    delay = get_config().mock_payment_delay_seconds / 2 if delay is None else delay
    if delay:
        time.sleep(delay)
    gateway = Gateway(gateway)
    return {
        "id": f"mock_{gateway.value}_intent_{_millis()}",
        "amount": amount,
        "currency": "INR" if gateway is Gateway.RAZORPAY else "USD",
        "status": "requires_payment_method",
        "client_secret": f"mock_secret_{_millis()}",
    }


def mock_process(amount, gateway, rng=None, delay=None, success_rate=None) -> Result:
    """Simulates a gateway charge. Nothing is charged anywhere."""
    config = get_config()
    rng = rng or random
    delay = config.mock_payment_delay_seconds if delay is None else delay
    success_rate = config.mock_payment_success_rate if success_rate is None else success_rate
    gateway = Gateway(gateway)
    if delay:
        time.sleep(delay)
    if rng.random() < success_rate:
        return Result.ok(transaction_id=f"mock_{gateway.value}_{_millis()}", gateway=gateway.value)
    return Result.fail("Payment was declined by the bank", kind="declined", gateway=gateway.value)


def pay_and_record(donor, ngo_id, wishlist_item_id, amount, gateway, name, email,
                   anonymous=False, wishlist_id=None, rng=None, delay=None) -> Result:
    """Demo payment flow: mock charge, then a completed donation row."""
    if not name or not email:
        return Result.fail("Please fill in your name and email", kind="validation")

    result = mock_process(amount, gateway, rng=rng, delay=delay)
    if not result.success:
        logger.warning("Payment error: %s", result.error)
        return result

    txn_id = result.data["transaction_id"]
    donation_id = db.create_donation({
        "donor_id": donor.id if donor else None,
        "ngo_id": ngo_id,
        "wishlist_id": wishlist_id,
        "wishlist_item_id": wishlist_item_id,
        "amount": amount,
        "gateway": Gateway(gateway).value,
        "txn_id": txn_id,
        "status": "completed",
        "name": name,
        "email": email,
        "anonymous": anonymous,
    })
    logger.info("Mock payment %s recorded as donation %s", txn_id, donation_id)
    return Result.ok("Your donation has been processed successfully", donation_id=donation_id, transaction_id=txn_id)
