"""Shared fixtures: a throwaway database, storage dir and a stubbed mail relay."""
from unittest.mock import MagicMock, patch

import pytest

import config
import db
from init_db import init_db


@pytest.fixture(autouse=True)
def app_env(tmp_path, monkeypatch):
    """Points every setting at tmp_path and creates the schema."""
    monkeypatch.setattr(config.st, "secrets", {})
    db_path = tmp_path / "gift.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.setenv("STORAGE_PUBLIC_URL", "http://files.test/storage")
    monkeypatch.setenv("MAILER_URL", "http://mailer.test")
    monkeypatch.setenv("SITE_URL", "http://app.test")
    monkeypatch.setenv("MOCK_PAYMENT_DELAY_SECONDS", "0")
    for name in ("RAISED_AMOUNT_MODE", "STRICT_ROLES", "MOCK_PAYMENT_SUCCESS_RATE"):
        monkeypatch.delenv(name, raising=False)
    init_db(db_path)
    return tmp_path


@pytest.fixture
def make_response():
    def _make(status=200, body=None, text=""):
        response = MagicMock()
        response.ok = 200 <= status < 300
        response.status_code = status
        response.text = text
        response.json.return_value = {} if body is None else body
        return response

    return _make


@pytest.fixture(autouse=True)
def fake_mailer(make_response):
    """Every POST to the relay succeeds unless a test says otherwise."""
    with patch("email_utils.requests.post") as post:
        post.return_value = make_response(body={"message": "Email sent successfully"})
        yield post


@pytest.fixture
def ngo():
    ngo_id = db.create_ngo({
        "owner_id": "owner-1",
        "name": "Helping Hands",
        "reg_no": "REG-001",
        "category": "Education",
        "mission": "Books for every child",
        "contact_email": "ngo@example.org",
    })
    return db.get_ngo(ngo_id)


@pytest.fixture
def wishlist(ngo):
    wishlist_id = db.create_wishlist(
        {"ngo_id": ngo.id, "title": "School Supplies", "status": "published", "target_amount": 1000},
        [
            {"name": "A", "price": 250, "qty": 2},
            {"name": "B", "price": 100, "qty": 5},
        ],
    )
    return db.get_wishlist(wishlist_id)


@pytest.fixture
def items(wishlist):
    return {item.name: item for item in db.list_items(wishlist.id)}


class FakeUpload:
    """Stands in for a Streamlit UploadedFile."""

    def __init__(self, name, data=b"data"):
        self.name = name
        self._data = data

    def getvalue(self):
        return self._data


@pytest.fixture
def upload():
    return FakeUpload
