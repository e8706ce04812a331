# session.py
import logging

import db
from auth import SIGNED_OUT, IdentityProvider
from config import get_config
from email_utils import send_welcome_email
from errors import AuthError, Result
from models import User

logger = logging.getLogger(__name__)


class AuthSession:
    """Holds the signed-in user's profile for one browser session.

    Construct once, call start() before use and close() on teardown.
    Listeners passed to subscribe() are called with the new profile (or None)
    every time it is republished.
    """

    def __init__(self, provider=None):
        self.provider = provider or IdentityProvider()
        self.user = None
        self.is_loading = True
        self._listeners = []
        self._subscription = None
        self._signing_up = False

    # -------------------------------
    # Lifecycle
    # -------------------------------
    def start(self, access_token=None):
        """Publishes the profile of an existing session, if any.

        Pass the access_token kept from an earlier page load to restore that
        session.
        """
        self.is_loading = True
        try:
            session = self.provider.get_session(access_token)
            if session:
                self._publish(self._load_profile(session.user))
            self._subscription = self.provider.on_auth_state_change(self._on_auth_event)
        finally:
            self.is_loading = False
        return self

    def close(self):
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()

    @property
    def access_token(self):
        session = self.provider.get_session()
        return session.access_token if session else None

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------
    # Internals
    # -------------------------------
    def _publish(self, user):
        self.user = user
        for listener in list(self._listeners):
            listener(user)

    def _load_profile(self, auth_user):
        """Reads the profile row once; mirrors the principal into a donor row if absent."""
        profile = db.get_profile(auth_user.id)
        if profile is None:
            name = auth_user.email.split("@")[0]
            logger.info("No profile for %s, creating a donor profile", auth_user.email)
            db.create_profile(auth_user.id, name, auth_user.email, "donor")
            profile = User(id=auth_user.id, email=auth_user.email, name=name, role="donor")
        return profile

    def _on_auth_event(self, event, session):
        if event == SIGNED_OUT or session is None:
            self._publish(None)
            return
        if self._signing_up:
            return
        try:
            self._publish(self._load_profile(session.user))
        except Exception as e:
            logger.error("Error fetching profile after %s: %s", event, e)
            self._publish(None)

    # -------------------------------
    # Operations
    # -------------------------------
    def signup(self, email, password, name, role="donor") -> Result:
        """Creates the account, then the profile row.

        Raises AuthError when the account cannot be created. A failed profile
        insert is not rolled back: the account stays, the error is logged and
        returned as a failed Result.
        """
        self._signing_up = True
        try:
            session = self.provider.sign_up(email, password)
        finally:
            self._signing_up = False

        try:
            db.create_profile(session.user.id, name, session.user.email, role)
        except Exception as e:
            logger.error("Profile insert failed for %s (account kept): %s", email, e)
            return Result.fail(f"Account created but profile could not be saved: {e}", kind="profile")

        self._publish(db.get_profile(session.user.id))

        welcome = send_welcome_email(session.user.email, name, "ngo" if role.startswith("ngo") else "donor")
        if not welcome.success:
            logger.warning("User created but welcome email failed: %s", welcome.error)
        return Result.ok("Account created", welcome_email_sent=welcome.success)

    def login(self, email, password):
        self.provider.sign_in_with_password(email, password)
        return self.user

    def logout(self):
        try:
            self.provider.sign_out()
        except Exception as e:
            logger.error("Sign out failed: %s", e)
        finally:
            if self.user is not None:
                self._publish(None)

    def update_profile(self, **changes):
        if not self.user:
            raise AuthError("User not authenticated")
        self._publish(db.update_profile(self.user.id, **changes))
        return self.user

    def reset_password(self, email):
        redirect_to = f"{get_config().site_url}/?page=reset_password"
        return self.provider.reset_password_for_email(email, redirect_to)

    def recover(self, token):
        self.provider.verify_recovery(token)
        return self.user

    def update_password(self, new_password):
        return self.provider.update_user(password=new_password)
