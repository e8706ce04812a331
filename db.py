# db.py
import json
import logging
import re
import sqlite3
from contextlib import contextmanager
from sqlite3 import Connection

from config import get_db_path
from errors import NotFoundError
from models import NGO, AuditLog, BankDetails, Donation, SuccessStory, User, Wishlist, WishlistItem

logger = logging.getLogger(__name__)


def get_conn() -> Connection:
    p = get_db_path()
    conn = sqlite3.connect(p, check_same_thread=False, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")
    return conn


@contextmanager
def transaction():
    conn = get_conn()
    try:
        yield conn.cursor()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _fetchone(query, params=()):
    conn = get_conn()
    try:
        return conn.execute(query, params).fetchone()
    finally:
        conn.close()


def _fetchall(query, params=()):
    conn = get_conn()
    try:
        return conn.execute(query, params).fetchall()
    finally:
        conn.close()


def _update(table, key_column, key, updates: dict):
    if not updates:
        return 0
    columns = ", ".join(f"{col} = ?" for col in updates)
    with transaction() as cur:
        cur.execute(f"UPDATE {table} SET {columns} WHERE {key_column} = ?", (*updates.values(), key))
        return cur.rowcount


def slugify(name):
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug or "ngo"


# -------------------------------
# Users (profiles)
# -------------------------------
def create_profile(user_id, name, email, role="donor"):
    with transaction() as cur:
        cur.execute(
            "INSERT INTO users (id, name, email, role) VALUES (?, ?, ?, ?)",
            (user_id, name, email, role),
        )
    return user_id


def get_profile(user_id):
    return User.from_row(_fetchone("SELECT * FROM users WHERE id = ?", (user_id,)))


def update_profile(user_id, **updates):
    updates = {k: v for k, v in updates.items() if k in ("name", "email", "role")}
    if not _update("users", "id", user_id, updates) and updates:
        raise NotFoundError(f"User {user_id} not found")
    return get_profile(user_id)


# -------------------------------
# NGOs
# -------------------------------
def create_ngo(data: dict):
    slug = data.get("slug") or slugify(data.get("name"))
    with transaction() as cur:
        cur.execute("""
            INSERT INTO ngo (
                owner_id, name, reg_no, mission, category, logo, docs, slug,
                description, website, contact_email, contact_phone
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            data.get("owner_id"),
            data.get("name"),
            data.get("reg_no"),
            data.get("mission"),
            data.get("category"),
            data.get("logo"),
            json.dumps(data.get("docs") or []),
            slug,
            data.get("description"),
            data.get("website"),
            data.get("contact_email"),
            data.get("contact_phone"),
        ))
        return cur.lastrowid


def get_ngo(ngo_id):
    return NGO.from_row(_fetchone("SELECT * FROM ngo WHERE id = ?", (ngo_id,)))


def get_ngo_by_slug(slug):
    return NGO.from_row(_fetchone("SELECT * FROM ngo WHERE slug = ?", (slug,)))


def get_ngo_by_owner(owner_id):
    return NGO.from_row(_fetchone("SELECT * FROM ngo WHERE owner_id = ?", (owner_id,)))


def get_ngo_by_email(email):
    return NGO.from_row(_fetchone("SELECT * FROM ngo WHERE contact_email = ?", (email,)))


def list_verified_ngos():
    rows = _fetchall("SELECT * FROM ngo WHERE verified = 1 ORDER BY created_at DESC, id DESC")
    return [NGO.from_row(r) for r in rows]


def list_pending_ngos():
    rows = _fetchall("SELECT * FROM ngo WHERE verified = 0 ORDER BY created_at DESC, id DESC")
    return [NGO.from_row(r) for r in rows]


def update_ngo(ngo_id, **updates):
    if "docs" in updates:
        updates["docs"] = json.dumps(updates["docs"] or [])
    if "verified" in updates:
        updates["verified"] = 1 if updates["verified"] else 0
    _update("ngo", "id", ngo_id, updates)
    return get_ngo(ngo_id)


def verify_ngo(ngo_id):
    if not _update("ngo", "id", ngo_id, {"verified": 1}):
        raise NotFoundError(f"NGO {ngo_id} not found")
    return get_ngo(ngo_id)


def add_ngo_document(ngo_id, url):
    ngo = get_ngo(ngo_id)
    if ngo is None:
        raise NotFoundError(f"NGO {ngo_id} not found")
    return update_ngo(ngo_id, docs=ngo.docs + [url])


# -------------------------------
# Bank / payment details
# -------------------------------
BANK_COLUMNS = (
    "account_holder_name", "account_number", "ifsc_code", "bank_name",
    "branch_name", "upi_id", "qr_code_url", "donation_link", "payment_methods",
)


def get_bank_details(ngo_id):
    return BankDetails.from_row(_fetchone("SELECT * FROM ngo_bank_details WHERE ngo_id = ?", (ngo_id,)))


def upsert_bank_details(ngo_id, details: dict):
    values = [details.get(col) for col in BANK_COLUMNS]
    pm_index = BANK_COLUMNS.index("payment_methods")
    if values[pm_index] is not None:
        values[pm_index] = json.dumps(values[pm_index])
    placeholders = ", ".join("?" for _ in BANK_COLUMNS)
    assignments = ", ".join(f"{col} = excluded.{col}" for col in BANK_COLUMNS)
    with transaction() as cur:
        cur.execute(
            f"INSERT INTO ngo_bank_details (ngo_id, {', '.join(BANK_COLUMNS)}) VALUES (?, {placeholders}) "
            f"ON CONFLICT(ngo_id) DO UPDATE SET {assignments}",
            (ngo_id, *values),
        )
    return get_bank_details(ngo_id)


# -------------------------------
# Wishlists
# -------------------------------
WISHLIST_SELECT = """
    SELECT w.*, n.name AS ngo_name, n.slug AS ngo_slug, n.logo AS ngo_logo,
           n.category AS ngo_category, n.contact_email AS ngo_contact_email
    FROM wishlists w
    LEFT JOIN ngo n ON w.ngo_id = n.id
"""


def create_wishlist(data: dict, items=None):
    """Inserts a wishlist and its items in one transaction; returns the new id."""
    with transaction() as cur:
        cur.execute("""
            INSERT INTO wishlists (
                ngo_id, title, description, status, target_amount, raised_amount,
                image, urgent, occasion_tags, deadline
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            data.get("ngo_id"),
            data.get("title"),
            data.get("description"),
            data.get("status", "draft"),
            data.get("target_amount", 0),
            data.get("raised_amount", 0),
            data.get("image"),
            1 if data.get("urgent") else 0,
            json.dumps(data.get("occasion_tags") or []),
            data.get("deadline"),
        ))
        wid = cur.lastrowid
        for item in items or []:
            _insert_item(cur, wid, item)
    return wid


def get_wishlist(wishlist_id):
    return Wishlist.from_row(_fetchone(WISHLIST_SELECT + " WHERE w.id = ?", (wishlist_id,)))


def list_published_wishlists():
    rows = _fetchall(WISHLIST_SELECT + " WHERE w.status = 'published' ORDER BY w.created_at DESC, w.id DESC")
    return [Wishlist.from_row(r) for r in rows]


def list_wishlists_by_ngo(ngo_id):
    rows = _fetchall(WISHLIST_SELECT + " WHERE w.ngo_id = ? ORDER BY w.created_at DESC, w.id DESC", (ngo_id,))
    return [Wishlist.from_row(r) for r in rows]


def update_wishlist(wishlist_id, **updates):
    if "occasion_tags" in updates:
        updates["occasion_tags"] = json.dumps(updates["occasion_tags"] or [])
    if "urgent" in updates:
        updates["urgent"] = 1 if updates["urgent"] else 0
    _update("wishlists", "id", wishlist_id, updates)
    return get_wishlist(wishlist_id)


def publish_wishlist(wishlist_id):
    return update_wishlist(wishlist_id, status="published")


def delete_wishlist(wishlist_id):
    # items first, then the wishlist
    with transaction() as cur:
        cur.execute("DELETE FROM wishlist_items WHERE wishlist_id = ?", (wishlist_id,))
        cur.execute("DELETE FROM wishlists WHERE id = ?", (wishlist_id,))
        return cur.rowcount


def set_raised_amount(wishlist_id, amount):
    """Overwrites raised_amount with a value computed by the caller."""
    if not _update("wishlists", "id", wishlist_id, {"raised_amount": amount}):
        raise NotFoundError(f"Wishlist {wishlist_id} not found")


def increment_raised_amount(wishlist_id, delta):
    """Adds delta to raised_amount in a single UPDATE; returns the new value."""
    with transaction() as cur:
        cur.execute("UPDATE wishlists SET raised_amount = raised_amount + ? WHERE id = ?", (delta, wishlist_id))
        if cur.rowcount == 0:
            raise NotFoundError(f"Wishlist {wishlist_id} not found")
        cur.execute("SELECT raised_amount FROM wishlists WHERE id = ?", (wishlist_id,))
        return cur.fetchone()["raised_amount"]


# -------------------------------
# Wishlist items
# -------------------------------
def _insert_item(cur, wishlist_id, item: dict):
    cur.execute("""
        INSERT INTO wishlist_items (
            wishlist_id, name, description, price, qty, funded_qty,
            vendor_url, rationale, image_url, status
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        wishlist_id,
        item.get("name"),
        item.get("description"),
        item.get("price", 0),
        item.get("qty", 1),
        item.get("funded_qty", 0),
        item.get("vendor_url"),
        item.get("rationale"),
        item.get("image_url"),
        item.get("status", "available"),
    ))
    return cur.lastrowid


def create_item(wishlist_id, item: dict):
    with transaction() as cur:
        return _insert_item(cur, wishlist_id, item)


def list_items(wishlist_id):
    rows = _fetchall("SELECT * FROM wishlist_items WHERE wishlist_id = ? ORDER BY name ASC", (wishlist_id,))
    return [WishlistItem.from_row(r) for r in rows]


def update_item(item_id, **updates):
    _update("wishlist_items", "id", item_id, updates)
    return WishlistItem.from_row(_fetchone("SELECT * FROM wishlist_items WHERE id = ?", (item_id,)))


# -------------------------------
# Donations
# -------------------------------
DONATION_SELECT = """
    SELECT d.*, n.name AS ngo_name, w.title AS wishlist_title
    FROM donations d
    LEFT JOIN ngo n ON d.ngo_id = n.id
    LEFT JOIN wishlists w ON d.wishlist_id = w.id
"""


def create_donation(data: dict):
    with transaction() as cur:
        cur.execute("""
            INSERT INTO donations (
                donor_id, ngo_id, wishlist_id, wishlist_item_id, items, amount,
                gateway, txn_id, status, name, email, message, anonymous
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            data.get("donor_id"),
            data.get("ngo_id"),
            data.get("wishlist_id"),
            data.get("wishlist_item_id"),
            json.dumps(data.get("items") or []),
            data.get("amount"),
            data.get("gateway"),
            data.get("txn_id"),
            data.get("status", "pending"),
            data.get("name"),
            data.get("email"),
            data.get("message"),
            1 if data.get("anonymous") else 0,
        ))
        return cur.lastrowid


def get_donation(donation_id):
    return Donation.from_row(_fetchone(DONATION_SELECT + " WHERE d.id = ?", (donation_id,)))


def list_donations_by_donor(donor_id):
    rows = _fetchall(DONATION_SELECT + " WHERE d.donor_id = ? ORDER BY d.created_at DESC, d.id DESC", (donor_id,))
    return [Donation.from_row(r) for r in rows]


def list_donations_by_ngo(ngo_id):
    rows = _fetchall(DONATION_SELECT + " WHERE d.ngo_id = ? ORDER BY d.created_at DESC, d.id DESC", (ngo_id,))
    return [Donation.from_row(r) for r in rows]


def list_donations_by_wishlist(wishlist_id):
    rows = _fetchall(DONATION_SELECT + " WHERE d.wishlist_id = ? ORDER BY d.id ASC", (wishlist_id,))
    return [Donation.from_row(r) for r in rows]


def update_donation_status(donation_id, status, txn_id=None):
    updates = {"status": status}
    if txn_id:
        updates["txn_id"] = txn_id
    if not _update("donations", "id", donation_id, updates):
        raise NotFoundError(f"Donation {donation_id} not found")
    return get_donation(donation_id)


def donation_stats():
    """Totals over completed donations only."""
    row = _fetchone("SELECT COALESCE(SUM(amount), 0) AS total, COUNT(*) AS n FROM donations WHERE status = 'completed'")
    return {"totalRaised": row["total"], "totalDonations": row["n"]}


def all_donation_totals():
    row = _fetchone("SELECT COALESCE(SUM(amount), 0) AS total, COUNT(*) AS n FROM donations")
    return {"totalRaised": row["total"], "totalDonations": row["n"]}


# -------------------------------
# Success stories
# -------------------------------
STORY_SELECT = """
    SELECT s.*, n.name AS ngo_name
    FROM success_stories s
    LEFT JOIN ngo n ON s.ngo_id = n.id
"""


def create_story(data: dict):
    with transaction() as cur:
        cur.execute("""
            INSERT INTO success_stories (ngo_id, title, story_text, media_url, impact_metrics)
            VALUES (?, ?, ?, ?, ?)
        """, (
            data.get("ngo_id"),
            data.get("title"),
            data.get("story_text"),
            data.get("media_url"),
            data.get("impact_metrics"),
        ))
        return cur.lastrowid


def list_approved_stories():
    rows = _fetchall(STORY_SELECT + " WHERE s.approved = 1 ORDER BY s.created_at DESC, s.id DESC")
    return [SuccessStory.from_row(r) for r in rows]


def list_stories_by_ngo(ngo_id):
    rows = _fetchall(STORY_SELECT + " WHERE s.ngo_id = ? ORDER BY s.created_at DESC, s.id DESC", (ngo_id,))
    return [SuccessStory.from_row(r) for r in rows]


def list_pending_stories():
    rows = _fetchall(STORY_SELECT + " WHERE s.approved = 0 ORDER BY s.created_at DESC, s.id DESC")
    return [SuccessStory.from_row(r) for r in rows]


def approve_story(story_id):
    if not _update("success_stories", "id", story_id, {"approved": 1}):
        raise NotFoundError(f"Story {story_id} not found")


# -------------------------------
# Audit logs (append-only)
# -------------------------------
def create_audit_log(user_id, action, entity, status, details=None):
    with transaction() as cur:
        cur.execute("""
            INSERT INTO audit_logs (user_id, action, entity, status, details)
            VALUES (?, ?, ?, ?, ?)
        """, (user_id, action, entity, status, json.dumps(details or {})))
        return cur.lastrowid


def list_audit_logs(limit=100):
    rows = _fetchall("""
        SELECT a.*, u.name AS user_name
        FROM audit_logs a
        LEFT JOIN users u ON a.user_id = u.id
        ORDER BY a.created_at DESC, a.id DESC
        LIMIT ?
    """, (limit,))
    return [AuditLog.from_row(r) for r in rows]


# -------------------------------
# Search (case-insensitive substring)
# -------------------------------
def _like(query):
    escaped = (query or "").replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_wishlists(query, category=None):
    pattern = _like(query)
    sql = WISHLIST_SELECT + """
        WHERE w.status = 'published'
          AND (w.title LIKE ? ESCAPE '\\' OR w.description LIKE ? ESCAPE '\\')
    """
    params = [pattern, pattern]
    if category:
        sql += " AND n.category = ?"
        params.append(category)
    sql += " ORDER BY w.created_at DESC, w.id DESC"
    return [Wishlist.from_row(r) for r in _fetchall(sql, params)]


def search_ngos(query):
    pattern = _like(query)
    rows = _fetchall("""
        SELECT * FROM ngo
        WHERE verified = 1
          AND (name LIKE ? ESCAPE '\\' OR mission LIKE ? ESCAPE '\\')
        ORDER BY created_at DESC, id DESC
    """, (pattern, pattern))
    return [NGO.from_row(r) for r in rows]


# -------------------------------
# OTP
# -------------------------------
def create_otp(email, otp, expires_at):
    with transaction() as cur:
        cur.execute("INSERT INTO otp (email, otp, expires_at) VALUES (?, ?, ?)", (email, otp, expires_at))
        return cur.lastrowid


def get_latest_otp(email):
    return _fetchone("SELECT * FROM otp WHERE email = ? ORDER BY id DESC LIMIT 1", (email,))
