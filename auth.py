# auth.py
import datetime
import logging
import re
import secrets
import sqlite3
import uuid
from dataclasses import dataclass

import bcrypt

from db import get_conn
from email_utils import send_password_reset_email
from errors import AuthError

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
USER_UPDATED = "USER_UPDATED"
PASSWORD_RECOVERY = "PASSWORD_RECOVERY"

MIN_PASSWORD_LENGTH = 6
RECOVERY_TTL_MINUTES = 60
SESSION_TTL_DAYS = 7


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt())
    return hashed.decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def is_valid_email(email):
    return bool(email) and re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


@dataclass
class AuthUser:
    id: str
    email: str


@dataclass
class Session:
    user: AuthUser
    access_token: str


class Subscription:
    def __init__(self, listeners, callback):
        self._listeners = listeners
        self._callback = callback

    def unsubscribe(self):
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class IdentityProvider:
    """Email/password accounts with one current session per instance.

    Credentials live in the `credentials` table, separate from the `users`
    profile rows. Every session is also stored in the `sessions` table under
    its access token, so a new instance can pick it up again with
    get_session(access_token). Listeners registered with on_auth_state_change
    are called as listener(event, session) after every sign-in, sign-out,
    recovery and user update.
    """

    def __init__(self):
        self._session = None
        self._listeners = []

    def _emit(self, event, session):
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed on %s", event)

    def _start_session(self, auth_user, event=SIGNED_IN):
        self._end_session()
        token = secrets.token_urlsafe(24)
        expires_at = (datetime.datetime.utcnow() + datetime.timedelta(days=SESSION_TTL_DAYS)).isoformat()
        conn = get_conn()
        try:
            conn.execute(
                "INSERT INTO sessions (access_token, credential_id, expires_at) VALUES (?, ?, ?)",
                (token, auth_user.id, expires_at),
            )
            conn.commit()
        finally:
            conn.close()
        self._session = Session(user=auth_user, access_token=token)
        self._emit(event, self._session)
        return self._session

    def _end_session(self):
        if not self._session:
            return
        conn = get_conn()
        try:
            conn.execute("DELETE FROM sessions WHERE access_token = ?", (self._session.access_token,))
            conn.commit()
        finally:
            conn.close()
        self._session = None

    def on_auth_state_change(self, callback):
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    def get_session(self, access_token=None):
        """Returns the current session, or restores the stored one for access_token.

        Unknown and expired tokens give None.
        """
        if self._session or not access_token:
            return self._session
        now = datetime.datetime.utcnow().isoformat()
        conn = get_conn()
        try:
            row = conn.execute("""
                SELECT c.id, c.email FROM sessions s
                JOIN credentials c ON c.id = s.credential_id
                WHERE s.access_token = ? AND s.expires_at > ?
            """, (access_token, now)).fetchone()
        finally:
            conn.close()
        if not row:
            logger.info("Stored session not found or expired")
            return None
        self._session = Session(user=AuthUser(id=row["id"], email=row["email"]), access_token=access_token)
        return self._session

    def sign_up(self, email, password):
        if not is_valid_email(email):
            raise AuthError("Please enter a valid email address.")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        uid = str(uuid.uuid4())
        conn = get_conn()
        cur = conn.cursor()
        try:
            cur.execute(
                "INSERT INTO credentials (id, email, password_hash) VALUES (?, ?, ?)",
                (uid, email.lower(), hash_password(password)),
            )
            conn.commit()
        except sqlite3.IntegrityError:
            raise AuthError("User already registered")
        finally:
            conn.close()
        return self._start_session(AuthUser(id=uid, email=email.lower()))

    def sign_in_with_password(self, email, password):
        row = self._get_credentials(email)
        if not row or not verify_password(password or "", row["password_hash"]):
            raise AuthError("Invalid login credentials")
        return self._start_session(AuthUser(id=row["id"], email=row["email"]))

    def sign_out(self):
        self._end_session()
        self._emit(SIGNED_OUT, None)

    def reset_password_for_email(self, email, redirect_to):
        """Stores a recovery token and emails the reset link.

        Unknown emails are accepted silently. Returns the email Result, or
        None when there was no account to mail.
        """
        row = self._get_credentials(email)
        if not row:
            logger.info("Password reset requested for unknown email %s", email)
            return None
        token = secrets.token_urlsafe(32)
        expires_at = (datetime.datetime.utcnow() + datetime.timedelta(minutes=RECOVERY_TTL_MINUTES)).isoformat()
        conn = get_conn()
        try:
            conn.execute(
                "INSERT INTO recovery_tokens (token, credential_id, expires_at) VALUES (?, ?, ?)",
                (token, row["id"], expires_at),
            )
            conn.commit()
        finally:
            conn.close()
        sep = "&" if "?" in redirect_to else "?"
        return send_password_reset_email(row["email"], f"{redirect_to}{sep}token={token}")

    def verify_recovery(self, token):
        now = datetime.datetime.utcnow().isoformat()
        conn = get_conn()
        try:
            cur = conn.execute("""
                SELECT c.id, c.email FROM recovery_tokens t
                JOIN credentials c ON c.id = t.credential_id
                WHERE t.token = ? AND t.used = 0 AND t.expires_at > ?
            """, (token, now))
            row = cur.fetchone()
            if not row:
                raise AuthError("Password reset link is invalid or has expired")
            conn.execute("UPDATE recovery_tokens SET used = 1 WHERE token = ?", (token,))
            conn.commit()
        finally:
            conn.close()
        return self._start_session(AuthUser(id=row["id"], email=row["email"]), event=PASSWORD_RECOVERY)

    def update_user(self, password=None, email=None):
        if not self._session:
            raise AuthError("Auth session missing!")
        updates = {}
        if password is not None:
            if len(password) < MIN_PASSWORD_LENGTH:
                raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
            updates["password_hash"] = hash_password(password)
        if email is not None:
            if not is_valid_email(email):
                raise AuthError("Please enter a valid email address.")
            updates["email"] = email.lower()
        if updates:
            conn = get_conn()
            try:
                assignments = ", ".join(f"{k} = ?" for k in updates)
                conn.execute(f"UPDATE credentials SET {assignments} WHERE id = ?", (*updates.values(), self._session.user.id))
                conn.commit()
            except sqlite3.IntegrityError:
                raise AuthError("Email already in use")
            finally:
                conn.close()
            if email is not None:
                self._session.user.email = email.lower()
        self._emit(USER_UPDATED, self._session)
        return self._session.user

    def _get_credentials(self, email):
        conn = get_conn()
        try:
            return conn.execute("SELECT * FROM credentials WHERE email = ?", ((email or "").lower(),)).fetchone()
        finally:
            conn.close()
