# init_db.py
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA = [
    # identity provider accounts
    """
    CREATE TABLE IF NOT EXISTS credentials (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS recovery_tokens (
        token TEXT PRIMARY KEY,
        credential_id TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        used INTEGER DEFAULT 0,
        FOREIGN KEY(credential_id) REFERENCES credentials(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        access_token TEXT PRIMARY KEY,
        credential_id TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(credential_id) REFERENCES credentials(id) ON DELETE CASCADE
    );
    """,
    # profiles; role is free-form text, compared by equality
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT NOT NULL,
        role TEXT DEFAULT 'donor',
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ngo (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        owner_id TEXT,
        name TEXT NOT NULL,
        reg_no TEXT,
        mission TEXT,
        category TEXT,
        logo TEXT,
        docs TEXT DEFAULT '[]',
        verified INTEGER DEFAULT 0,
        slug TEXT UNIQUE,
        description TEXT,
        website TEXT,
        contact_email TEXT,
        contact_phone TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ngo_bank_details (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ngo_id INTEGER NOT NULL UNIQUE,
        account_holder_name TEXT,
        account_number TEXT,
        ifsc_code TEXT,
        bank_name TEXT,
        branch_name TEXT,
        upi_id TEXT,
        qr_code_url TEXT,
        donation_link TEXT,
        payment_methods TEXT,
        FOREIGN KEY(ngo_id) REFERENCES ngo(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS wishlists (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ngo_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        status TEXT DEFAULT 'draft', -- draft / pending / published / completed
        target_amount REAL DEFAULT 0,
        raised_amount REAL DEFAULT 0,
        image TEXT,
        urgent INTEGER DEFAULT 0,
        occasion_tags TEXT DEFAULT '[]',
        deadline TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(ngo_id) REFERENCES ngo(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS wishlist_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        wishlist_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        price REAL NOT NULL DEFAULT 0,
        qty INTEGER NOT NULL DEFAULT 1,
        funded_qty INTEGER DEFAULT 0,
        vendor_url TEXT,
        rationale TEXT,
        image_url TEXT,
        status TEXT DEFAULT 'available', -- available / funded / out_of_stock
        FOREIGN KEY(wishlist_id) REFERENCES wishlists(id) ON DELETE CASCADE
    );
    """,
    # no foreign keys: manual donations may reference nothing
    """
    CREATE TABLE IF NOT EXISTS donations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        donor_id TEXT,
        ngo_id INTEGER,
        wishlist_id INTEGER,
        wishlist_item_id INTEGER,
        items TEXT DEFAULT '[]',
        amount REAL NOT NULL,
        gateway TEXT,
        txn_id TEXT,
        status TEXT DEFAULT 'pending', -- pending / completed / failed / refunded
        name TEXT,
        email TEXT,
        message TEXT,
        anonymous INTEGER DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS success_stories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ngo_id INTEGER NOT NULL,
        title TEXT NOT NULL,
        story_text TEXT,
        media_url TEXT,
        impact_metrics TEXT,
        approved INTEGER DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(ngo_id) REFERENCES ngo(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        action TEXT NOT NULL,
        entity TEXT,
        status TEXT,
        details TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS otp (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL,
        otp TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """,
]


def init_db(db_path):
    """Creates every table the app reads or writes. Safe to run repeatedly."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    c = conn.cursor()

    # Pragmas
    c.execute("PRAGMA foreign_keys = ON;")
    c.execute("PRAGMA journal_mode = WAL;")

    for statement in SCHEMA:
        c.execute(statement)

    conn.commit()
    conn.close()
    logger.info("DB initialized at %s", db_path)
    return db_path


if __name__ == "__main__":
    from config import configure_logging, get_config

    config = get_config()
    configure_logging(config.log_level)
    init_db(config.db_path)
