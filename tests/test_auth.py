import re

import pytest

from auth import PASSWORD_RECOVERY, SIGNED_IN, SIGNED_OUT, USER_UPDATED, IdentityProvider, hash_password, verify_password
from db import get_conn
from errors import AuthError


@pytest.fixture
def provider():
    return IdentityProvider()


def test_password_hashing_round_trip():
    """Should verify the original password and reject others."""
    hashed = hash_password("secret123")

    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_sign_up_starts_a_session_and_emits(provider):
    """Should create credentials, start a session and notify listeners."""
    events = []
    provider.on_auth_state_change(lambda event, session: events.append((event, session)))

    session = provider.sign_up("Jane@X.com", "secret123")

    assert session.user.email == "jane@x.com"
    assert provider.get_session() is session
    assert events == [(SIGNED_IN, session)]


@pytest.mark.parametrize("email, password", [("not-an-email", "secret123"), ("jane@x.com", "123")])
def test_sign_up_rejects_bad_input(provider, email, password):
    """Should refuse invalid emails and short passwords."""
    with pytest.raises(AuthError):
        provider.sign_up(email, password)


def test_duplicate_sign_up(provider):
    """Should refuse a second account for the same email."""
    provider.sign_up("jane@x.com", "secret123")

    with pytest.raises(AuthError, match="User already registered"):
        provider.sign_up("JANE@x.com", "other-secret")


def test_sign_in_and_out(provider):
    """Should sign in with the right password and clear the session on sign out."""
    provider.sign_up("jane@x.com", "secret123")
    provider.sign_out()
    events = []
    provider.on_auth_state_change(lambda event, session: events.append(event))

    with pytest.raises(AuthError, match="Invalid login credentials"):
        provider.sign_in_with_password("jane@x.com", "wrong")
    session = provider.sign_in_with_password("jane@x.com", "secret123")
    provider.sign_out()

    assert session.user.email == "jane@x.com"
    assert provider.get_session() is None
    assert events == [SIGNED_IN, SIGNED_OUT]


def test_unsubscribe_stops_events(provider):
    """Should not call a listener after it unsubscribes."""
    events = []
    subscription = provider.on_auth_state_change(lambda event, session: events.append(event))
    subscription.unsubscribe()

    provider.sign_up("jane@x.com", "secret123")

    assert events == []


def test_failing_listener_does_not_break_sign_in(provider):
    """Should log listener errors and keep notifying the others."""
    events = []

    def broken(event, session):
        raise RuntimeError("boom")

    provider.on_auth_state_change(broken)
    provider.on_auth_state_change(lambda event, session: events.append(event))

    provider.sign_up("jane@x.com", "secret123")

    assert events == [SIGNED_IN]


def test_password_recovery_flow(provider, fake_mailer):
    """Should email a one-time link whose token signs the user in for a password update."""
    # Arrange
    provider.sign_up("jane@x.com", "secret123")
    provider.sign_out()
    events = []
    provider.on_auth_state_change(lambda event, session: events.append(event))

    # Act
    result = provider.reset_password_for_email("jane@x.com", "http://app.test/?page=reset_password")
    text = fake_mailer.call_args.kwargs["json"]["text"]
    token = re.search(r"token=([\w-]+)", text).group(1)
    provider.verify_recovery(token)
    provider.update_user(password="new-secret")
    provider.sign_out()

    # Assert
    assert result.success
    assert "http://app.test/?page=reset_password&token=" in text
    assert events == [PASSWORD_RECOVERY, USER_UPDATED, SIGNED_OUT]
    assert provider.sign_in_with_password("jane@x.com", "new-secret")
    with pytest.raises(AuthError):
        provider.verify_recovery(token)


def test_reset_for_unknown_email_is_silent(provider, fake_mailer):
    """Should not reveal or mail anything for unknown accounts."""
    assert provider.reset_password_for_email("ghost@x.com", "http://app.test/") is None
    fake_mailer.assert_not_called()


def test_update_user_needs_a_session(provider):
    """Should refuse updates when nobody is signed in."""
    with pytest.raises(AuthError):
        provider.update_user(password="new-secret")


def test_get_session_restores_stored_token(provider):
    """Should rebuild the session on a fresh provider from its access token."""
    session = provider.sign_up("jane@x.com", "secret123")

    restored = IdentityProvider().get_session(session.access_token)

    assert restored.user.id == session.user.id
    assert restored.user.email == "jane@x.com"
    assert restored.access_token == session.access_token


def test_get_session_ignores_unknown_and_expired_tokens(provider):
    """Should give None for tokens that were never issued or have run out."""
    session = provider.sign_up("jane@x.com", "secret123")
    conn = get_conn()
    conn.execute("UPDATE sessions SET expires_at = '2000-01-01T00:00:00' WHERE access_token = ?", (session.access_token,))
    conn.commit()
    conn.close()

    assert IdentityProvider().get_session("never-issued") is None
    assert IdentityProvider().get_session(session.access_token) is None


def test_sign_in_replaces_stored_session(provider):
    """Should drop the previous token when the same provider signs in again."""
    old = provider.sign_up("jane@x.com", "secret123")

    new = provider.sign_in_with_password("jane@x.com", "secret123")

    assert new.access_token != old.access_token
    assert IdentityProvider().get_session(old.access_token) is None
    assert IdentityProvider().get_session(new.access_token) is not None
