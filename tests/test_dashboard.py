import logging

import pytest

import dashboard
import db
from dashboard import Role, View
from errors import UnknownRoleError, ValidationError
from models import User


def make_user(role, user_id="u-1"):
    return User(id=user_id, email=f"{user_id}@x.com", name="Test", role=role)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("donor", Role.DONOR),
        ("ngo_owner", Role.NGO),
        ("ngo_editor", Role.NGO),
        ("moderator", Role.ADMIN),
        ("admin", Role.ADMIN),
    ],
)
def test_parse_role(value, expected):
    """Should map every stored role string onto the closed Role set."""
    assert dashboard.parse_role(value) is expected


@pytest.mark.parametrize("value", ["unknown_value", "", None, "Admin"])
def test_parse_role_rejects_unknown(value):
    with pytest.raises(UnknownRoleError):
        dashboard.parse_role(value)


def test_no_user_redirects_to_login():
    """Should send anonymous visitors to the login page."""
    assert dashboard.resolve_view(None) is View.LOGIN_REDIRECT


@pytest.mark.parametrize("role, view", [("donor", View.DONOR), ("ngo_owner", View.NGO), ("moderator", View.ADMIN)])
def test_known_roles_get_their_view(role, view):
    assert dashboard.resolve_view(make_user(role)) is view


def test_unknown_role_falls_back_to_donor(caplog):
    """Should render the donor dashboard and warn for an unrecognised role."""
    with caplog.at_level(logging.WARNING, logger="dashboard"):
        view = dashboard.resolve_view(make_user("unknown_value"))

    assert view is View.DONOR
    assert "unknown_value" in caplog.text


def test_unknown_role_is_an_error_when_strict(monkeypatch):
    """Should return the UNKNOWN_ROLE view with strict_roles on."""
    monkeypatch.setenv("STRICT_ROLES", "true")

    assert dashboard.resolve_view(make_user("unknown_value")) is View.UNKNOWN_ROLE
    assert dashboard.resolve_view(make_user("unknown_value"), strict=False) is View.DONOR


def test_donor_summary(ngo):
    """Should total completed donations only and list the five most recent."""
    # Arrange
    other = db.create_ngo({"name": "Second NGO"})
    for amount in (100, 200, 300, 400):
        db.create_donation({"donor_id": "u-1", "ngo_id": ngo.id, "amount": amount, "status": "completed"})
    db.create_donation({"donor_id": "u-1", "ngo_id": other, "amount": 50, "status": "completed"})
    db.create_donation({"donor_id": "u-1", "ngo_id": other, "amount": 999, "status": "failed"})
    db.create_donation({"donor_id": "someone-else", "ngo_id": ngo.id, "amount": 10, "status": "completed"})

    # Act
    summary = dashboard.donor_summary("u-1")

    # Assert
    assert summary["total_donated"] == 1050
    assert summary["donation_count"] == 5
    assert summary["ngos_supported"] == 2
    assert len(summary["recent"]) == 5
    assert summary["recent"][0].amount == 999


def test_ngo_summary(ngo, wishlist):
    """Should count completed donations and wishlists by status."""
    db.create_wishlist({"ngo_id": ngo.id, "title": "Draft list", "target_amount": 500})
    db.create_donation({"ngo_id": ngo.id, "wishlist_id": wishlist.id, "amount": 250, "status": "completed"})
    db.create_donation({"ngo_id": ngo.id, "wishlist_id": wishlist.id, "amount": 75, "status": "pending"})
    db.set_raised_amount(wishlist.id, 250)

    summary = dashboard.ngo_summary(ngo.id)

    assert summary["total_raised"] == 250
    assert summary["donation_count"] == 1
    assert summary["published_wishlists"] == 1
    assert summary["draft_wishlists"] == 1
    assert summary["progress"][wishlist.id] == 25
    assert summary["bank_details"] is None


def test_verify_ngo_writes_audit_log():
    """Should verify the NGO and append an ngo_verified audit entry."""
    # Arrange
    admin = make_user("admin", "admin-1")
    db.create_profile(admin.id, "Admin", admin.email, "admin")
    pending = db.create_ngo({"name": "New NGO"})

    # Act
    ngo = dashboard.verify_ngo_action(admin, pending)

    # Assert
    assert ngo.verified
    summary = dashboard.admin_summary()
    assert summary["pending_ngos"] == []
    log = summary["audit_logs"][0]
    assert (log.action, log.entity, log.status) == ("ngo_verified", "ngo", "success")
    assert log.details == {"ngo_id": pending}
    assert log.user_name == "Admin"


def test_approve_story_writes_audit_log(ngo):
    """Should approve the story and log story_approved."""
    admin = make_user("moderator", "mod-1")
    story_id = db.create_story({"ngo_id": ngo.id, "title": "Books delivered", "story_text": "..."})
    assert [s.id for s in dashboard.admin_summary()["pending_stories"]] == [story_id]

    dashboard.approve_story_action(admin, story_id)

    summary = dashboard.admin_summary()
    assert summary["pending_stories"] == []
    assert summary["audit_logs"][0].action == "story_approved"
    assert summary["audit_logs"][0].details == {"story_id": story_id}
    assert [s.title for s in db.list_approved_stories()] == ["Books delivered"]


def test_admin_summary_totals_all_donations():
    db.create_donation({"amount": 100, "status": "completed"})
    db.create_donation({"amount": 40, "status": "failed"})

    summary = dashboard.admin_summary()

    assert summary["totalRaised"] == 140
    assert summary["totalDonations"] == 2


def test_audit_log_list_is_capped_at_twenty():
    for i in range(25):
        db.create_audit_log(None, "ngo_verified", "ngo", "success", {"ngo_id": i})

    assert len(dashboard.admin_summary()["audit_logs"]) == 20


def test_wishlist_draft_target_and_preview():
    """Should derive target and preview raised amount from the item list."""
    draft = dashboard.build_wishlist_draft(
        1, "Winter kits", items=[{"name": "Blanket", "price": 300, "qty": 2}, {"name": "Socks", "price": 50, "qty": 4}]
    )

    assert draft.target_amount == 800
    assert draft.preview_raised == 800
    assert draft.preview_progress == 100
    draft.remove_item(0)
    assert draft.target_amount == 200


def test_submit_wishlist_draft(ngo):
    """Should store the wishlist with its items and a zero raised amount."""
    draft = dashboard.build_wishlist_draft(ngo.id, "Winter kits", items=[{"name": "Blanket", "price": 300, "qty": 2}])

    wishlist_id = dashboard.submit_wishlist_draft(draft, publish=True)

    wishlist = db.get_wishlist(wishlist_id)
    assert wishlist.status == "published"
    assert wishlist.target_amount == 600
    assert wishlist.raised_amount == 0
    assert [(i.name, i.qty) for i in db.list_items(wishlist_id)] == [("Blanket", 2)]


def test_submit_wishlist_draft_requires_items(ngo):
    with pytest.raises(ValidationError):
        dashboard.submit_wishlist_draft(dashboard.build_wishlist_draft(ngo.id, "Empty"))


def test_delete_wishlist_removes_items(wishlist):
    """Should delete the items together with the wishlist."""
    dashboard.delete_wishlist(wishlist.id)

    assert db.get_wishlist(wishlist.id) is None
    assert db.list_items(wishlist.id) == []


def test_submit_success_story_with_media(ngo, upload, app_env):
    """Should upload the media and store a story awaiting approval."""
    story_id = dashboard.submit_success_story(ngo.id, "Books delivered", "200 children", "200 kids", upload("photo.JPG"))

    story = db.list_stories_by_ngo(ngo.id)[0]
    assert story.id == story_id
    assert story.approved is False
    assert story.media_url.startswith(f"http://files.test/storage/success-stories/{ngo.id}/story_")
    assert story.media_url.endswith(".jpg")


def test_upload_verification_document(ngo, upload, app_env):
    """Should store the file and append its URL to the NGO's docs."""
    url = dashboard.upload_verification_document(ngo.id, upload("registration.pdf", b"%PDF"))

    assert db.get_ngo(ngo.id).docs == [url]
    stored = list((app_env / "storage" / "ngo-docs" / str(ngo.id)).iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == b"%PDF"
