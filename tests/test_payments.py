import re
from unittest.mock import MagicMock

import pytest

import db
import payments
from payments import Gateway


def rng(value):
    mock = MagicMock()
    mock.random.return_value = value
    return mock


@pytest.mark.parametrize(
    "gateway, key, currency",
    [
        ("stripe", "publishableKey", "USD"),
        ("paypal", "clientId", "USD"),
        ("razorpay", "keyId", "INR"),
    ],
)
def test_gateway_config(gateway, key, currency):
    config = payments.gateway_config(gateway)

    assert config["currency"] == currency
    assert key in config


def test_gateway_config_reads_environment(monkeypatch):
    monkeypatch.setenv("RAZORPAY_KEY_ID", "rzp_live_123")

    assert payments.gateway_config(Gateway.RAZORPAY)["keyId"] == "rzp_live_123"


def test_mock_process_success():
    """Should return a mock transaction id when the draw is under the success rate."""
    result = payments.mock_process(250, "stripe", rng=rng(0.5), delay=0)

    assert result.success
    assert re.fullmatch(r"mock_stripe_\d+", result.data["transaction_id"])


def test_mock_process_declined():
    """Should decline draws above the success rate."""
    result = payments.mock_process(250, "paypal", rng=rng(0.95), delay=0)

    assert not result.success
    assert result.kind == "declined"
    assert result.error == "Payment was declined by the bank"


def test_mock_process_rejects_unknown_gateway():
    with pytest.raises(ValueError):
        payments.mock_process(250, "bitcoin", rng=rng(0.1), delay=0)


def test_mock_create_intent():
    intent = payments.mock_create_intent(100, "razorpay", delay=0)

    assert intent["currency"] == "INR"
    assert intent["status"] == "requires_payment_method"


def test_pay_and_record_inserts_completed_donation(ngo, items):
    """Should store a completed donation carrying gateway and transaction id."""
    result = payments.pay_and_record(None, ngo.id, items["A"].id, 250, "razorpay", "Jane", "jane@x.com", rng=rng(0.1))

    assert result.success
    donation = db.get_donation(result.data["donation_id"])
    assert donation.status == "completed"
    assert donation.gateway == "razorpay"
    assert donation.txn_id == result.data["transaction_id"]
    assert donation.wishlist_item_id == items["A"].id


def test_pay_and_record_declined_writes_nothing(ngo):
    result = payments.pay_and_record(None, ngo.id, None, 250, "stripe", "Jane", "jane@x.com", rng=rng(0.99))

    assert not result.success
    assert db.list_donations_by_ngo(ngo.id) == []


def test_pay_and_record_requires_name_and_email(ngo):
    result = payments.pay_and_record(None, ngo.id, None, 250, "stripe", "", "jane@x.com", rng=rng(0.1))

    assert not result.success
    assert result.error == "Please fill in your name and email"
