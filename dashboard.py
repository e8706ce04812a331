# dashboard.py
"""Role dispatch and the data behind the donor, NGO and admin dashboards."""
import datetime
import enum
import logging
from dataclasses import dataclass, field

import db
import storage
from config import get_config
from errors import UnknownRoleError, ValidationError

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    DONOR = "donor"
    NGO = "ngo"
    ADMIN = "admin"


ROLE_ALIASES = {
    "donor": Role.DONOR,
    "ngo_owner": Role.NGO,
    "ngo_editor": Role.NGO,
    "moderator": Role.ADMIN,
    "admin": Role.ADMIN,
}


class View(str, enum.Enum):
    LOGIN_REDIRECT = "login_redirect"
    DONOR = "donor"
    NGO = "ngo"
    ADMIN = "admin"
    UNKNOWN_ROLE = "unknown_role"


def parse_role(value) -> Role:
    try:
        return ROLE_ALIASES[value]
    except (KeyError, TypeError):
        raise UnknownRoleError(value)


def resolve_view(user, strict=None) -> View:
    """Picks the dashboard for a profile.

    Unrecognised roles fall back to the donor view with a warning, unless
    strict_roles is on, in which case they get the UNKNOWN_ROLE error view.
    """
    if user is None:
        return View.LOGIN_REDIRECT
    if strict is None:
        strict = get_config().strict_roles
    try:
        return View(parse_role(user.role).value)
    except UnknownRoleError as e:
        if strict:
            logger.error("Refusing dashboard for user %s: %s", user.id, e)
            return View.UNKNOWN_ROLE
        logger.warning("%s for user %s, showing the donor dashboard", e, user.id)
        return View.DONOR


# -------------------------------
# Donor
# -------------------------------
def donor_summary(user_id):
    donations = db.list_donations_by_donor(user_id)
    completed = [d for d in donations if d.status == "completed"]
    return {
        "total_donated": sum(float(d.amount) for d in completed),
        "donation_count": len(completed),
        "ngos_supported": len({d.ngo_id for d in completed if d.ngo_id is not None}),
        "recent": donations[:5],
    }


# -------------------------------
# NGO
# -------------------------------
def _this_month(created_at, today=None):
    if not created_at:
        return False
    today = today or datetime.date.today()
    return created_at[:7] == today.strftime("%Y-%m")


def ngo_summary(ngo_id, today=None):
    seen = set()
    donations = []
    for d in db.list_donations_by_ngo(ngo_id):
        if d.id in seen or d.status != "completed":
            continue
        seen.add(d.id)
        donations.append(d)
    wishlists = db.list_wishlists_by_ngo(ngo_id)
    return {
        "donations": donations,
        "total_raised": sum(float(d.amount) for d in donations),
        "raised_this_month": sum(float(d.amount) for d in donations if _this_month(d.created_at, today)),
        "donation_count": len(donations),
        "published_wishlists": sum(1 for w in wishlists if w.status == "published"),
        "draft_wishlists": sum(1 for w in wishlists if w.status == "draft"),
        "wishlists": wishlists,
        "progress": {w.id: min(round(w.progress), 100) for w in wishlists},
        "bank_details": db.get_bank_details(ngo_id),
        "stories": db.list_stories_by_ngo(ngo_id),
    }


@dataclass
class WishlistDraft:
    """Wishlist form state. The target is always the sum of price x qty."""

    ngo_id: int
    title: str = ""
    description: str = ""
    urgent: bool = False
    occasion_tags: list = field(default_factory=list)
    deadline: str = None
    image: str = None
    items: list = field(default_factory=list)

    def add_item(self, name, price, qty=1, **extra):
        self.items.append({"name": name, "price": float(price), "qty": int(qty), **extra})

    def remove_item(self, index):
        del self.items[index]

    @property
    def target_amount(self):
        return sum(i["price"] * i["qty"] for i in self.items)

    @property
    def preview_raised(self):
        # form preview only; unrelated to the stored raised_amount
        return sum(i["price"] * i["qty"] for i in self.items)

    @property
    def preview_progress(self):
        if self.target_amount <= 0:
            return 0.0
        return min(self.preview_raised / self.target_amount * 100, 100)

    def validate(self):
        missing = []
        if not self.title.strip():
            missing.append("title")
        if not self.items:
            missing.append("items")
        for item in self.items:
            if not item.get("name") or item.get("price", 0) <= 0 or item.get("qty", 0) < 1:
                missing.append("item details")
                break
        if missing:
            raise ValidationError("Please add a title and at least one complete item", missing)


def build_wishlist_draft(ngo_id, title="", description="", items=None, **extra):
    draft = WishlistDraft(ngo_id=ngo_id, title=title, description=description, **extra)
    for item in items or []:
        draft.add_item(**item)
    return draft


def submit_wishlist_draft(draft: WishlistDraft, publish=False, image_file=None):
    draft.validate()
    image = draft.image
    if image_file is not None:
        image = storage.upload_file("wishlist-images", str(draft.ngo_id), "wishlist", image_file)
    wishlist_id = db.create_wishlist({
        "ngo_id": draft.ngo_id,
        "title": draft.title,
        "description": draft.description,
        "status": "published" if publish else "draft",
        "target_amount": draft.target_amount,
        "raised_amount": 0,
        "image": image,
        "urgent": draft.urgent,
        "occasion_tags": draft.occasion_tags,
        "deadline": draft.deadline,
    }, draft.items)
    logger.info("Wishlist %s created for ngo %s (%d items)", wishlist_id, draft.ngo_id, len(draft.items))
    return wishlist_id


def delete_wishlist(wishlist_id):
    deleted = db.delete_wishlist(wishlist_id)
    logger.info("Wishlist %s deleted", wishlist_id)
    return deleted


def submit_success_story(ngo_id, title, story_text, impact_metrics=None, media_file=None):
    if not title or not story_text:
        raise ValidationError("Please add a title and the story", ["title", "story_text"])
    media_url = None
    if media_file is not None:
        media_url = storage.upload_file("success-stories", str(ngo_id), "story", media_file)
    return db.create_story({
        "ngo_id": ngo_id,
        "title": title,
        "story_text": story_text,
        "media_url": media_url,
        "impact_metrics": impact_metrics,
    })


def upload_verification_document(ngo_id, doc_file):
    url = storage.upload_file("ngo-docs", str(ngo_id), "doc", doc_file)
    db.add_ngo_document(ngo_id, url)
    logger.info("Verification document uploaded for ngo %s", ngo_id)
    return url


# -------------------------------
# Admin
# -------------------------------
def admin_summary():
    return {
        "pending_ngos": db.list_pending_ngos(),
        "pending_stories": db.list_pending_stories(),
        "audit_logs": db.list_audit_logs(limit=20),
        **db.all_donation_totals(),
    }


def verify_ngo_action(actor, ngo_id):
    ngo = db.verify_ngo(ngo_id)
    db.create_audit_log(actor.id if actor else None, "ngo_verified", "ngo", "success", {"ngo_id": ngo_id})
    logger.info("NGO %s verified by %s", ngo_id, actor.id if actor else None)
    return ngo


def approve_story_action(actor, story_id):
    db.approve_story(story_id)
    db.create_audit_log(actor.id if actor else None, "story_approved", "success_story", "success", {"story_id": story_id})
    logger.info("Story %s approved by %s", story_id, actor.id if actor else None)
