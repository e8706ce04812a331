# email_utils.py
import logging
from html import escape

import requests

from config import get_config
from errors import Result

logger = logging.getLogger(__name__)

SIGNATURE = "The Gift for Cause Team"


def _endpoint(config=None):
    config = config or get_config()
    return f"{config.mailer_url}/send-email"


def check_email_service() -> bool:
    """True when the relay answers an OPTIONS request."""
    try:
        r = requests.options(_endpoint(), timeout=10)
        return r.ok
    except requests.RequestException as e:
        logger.warning("Email service test failed: %s", e)
        return False


def send_email(to: str, subject: str, text: str, html: str) -> Result:
    """POSTs one message to the relay.

    Never raises: network failures, non-2xx responses and provider-reported
    errors all come back as a failed Result. Each call is an independent
    attempt; there is no retry and no deduplication.
    """
    config = get_config()
    if not config.mailer_url:
        logger.error("send_email error: mailer_url is not configured")
        return Result.fail("Email service is not configured", kind="config")

    logger.info("Attempting to send email to: %s", to)
    try:
        r = requests.post(
            _endpoint(config),
            json={"to": to, "subject": subject, "text": text, "html": html},
            timeout=config.email_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.error("send_email error: %s", e)
        return Result.fail(
            f"Network error: Unable to connect to email service ({e.__class__.__name__})",
            kind="network",
        )

    if not r.ok:
        logger.error("Email API error response: %s %s", r.status_code, r.text)
        return Result.fail(f"Server error: HTTP {r.status_code}: {r.text}", kind="server")

    try:
        data = r.json()
    except ValueError:
        data = {}
    if isinstance(data, dict) and data.get("error"):
        logger.error("Email provider error: %s", data["error"])
        return Result.fail(str(data["error"]), kind="provider")

    message = data.get("message") if isinstance(data, dict) else None
    logger.info("Email sent successfully to %s", to)
    return Result.ok(message or "Email sent successfully")


def _wrap(body_html):
    return f'<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">{body_html}</div>'


def format_amount(amount):
    return f"₹{amount:,.0f}" if float(amount).is_integer() else f"₹{amount:,.2f}"


def send_welcome_email(email, name, role):
    subject = f"Welcome to Gift for Cause, {name}!"
    action = "creating wishlists and managing donations" if role == "ngo" else "browsing and donating to causes"
    text = (
        f"Hello {name},\n\n"
        f"Welcome to Gift for Cause! We're excited to have you join our community of {role}s making a positive impact.\n\n"
        f"Best regards,\n{SIGNATURE}"
    )
    n, r = escape(name), escape(role)
    html = _wrap(
        f'<h1 style="color: #2563eb;">Welcome to Gift for Cause, {n}!</h1>'
        f"<p>Hello {n},</p>"
        f"<p>Welcome to Gift for Cause! We're excited to have you join our community of {r}s making a positive impact.</p>"
        f"<p>You can now start {action}.</p>"
        f"<p>Best regards,<br>{SIGNATURE}</p>"
    )
    return send_email(email, subject, text, html)


def send_password_reset_email(email, reset_link):
    subject = "Reset Your Password - Gift for Cause"
    text = (
        "Hello,\n\nYou requested to reset your password. Click the link below to reset it:\n\n"
        f"{reset_link}\n\nIf you didn't request this, please ignore this email.\n\n"
        f"Best regards,\n{SIGNATURE}"
    )
    link = escape(reset_link, quote=True)
    html = _wrap(
        '<h1 style="color: #2563eb;">Reset Your Password</h1>'
        "<p>Hello,</p><p>You requested to reset your password. Click the button below to reset it:</p>"
        f'<div style="text-align: center; margin: 30px 0;"><a href="{link}">Reset Password</a></div>'
        "<p>If you didn't request this, please ignore this email.</p>"
        f"<p>Best regards,<br>{SIGNATURE}</p>"
    )
    return send_email(email, subject, text, html)


def send_donation_confirmation_email(email, donor_name, amount, wishlist_title, ngo_name):
    subject = f"Thank you for your donation - {wishlist_title}"
    text = (
        f"Hello {donor_name},\n\n"
        f'Thank you for your generous donation of {format_amount(amount)} to "{wishlist_title}" by {ngo_name}.\n\n'
        "Your contribution makes a real difference in helping those in need.\n\n"
        f"Best regards,\n{SIGNATURE}"
    )
    d, w, n = escape(donor_name), escape(wishlist_title), escape(ngo_name)
    html = _wrap(
        '<h1 style="color: #16a34a;">Thank you for your donation!</h1>'
        f"<p>Hello {d},</p>"
        f'<p>Thank you for your generous donation of <strong>{format_amount(amount)}</strong> to "<strong>{w}</strong>" by <strong>{n}</strong>.</p>'
        "<p>Your contribution makes a real difference in helping those in need.</p>"
        f"<h3>Donation Details</h3><p><strong>Amount:</strong> {format_amount(amount)}</p>"
        f"<p><strong>Cause:</strong> {w}</p><p><strong>Organization:</strong> {n}</p>"
        f"<p>Best regards,<br>{SIGNATURE}</p>"
    )
    return send_email(email, subject, text, html)


def send_ngo_donation_notification_email(email, ngo_name, donor_name, amount, wishlist_title):
    subject = f"New donation received - {wishlist_title}"
    text = (
        f"Hello {ngo_name},\n\n"
        f'You received a new donation of {format_amount(amount)} from {donor_name} for your wishlist "{wishlist_title}".\n\n'
        f"Thank you for using Gift for Cause!\n\nBest regards,\n{SIGNATURE}"
    )
    d, w, n = escape(donor_name), escape(wishlist_title), escape(ngo_name)
    html = _wrap(
        '<h1 style="color: #16a34a;">New Donation Received!</h1>'
        f"<p>Hello {n},</p>"
        f'<p>You received a new donation of <strong>{format_amount(amount)}</strong> from <strong>{d}</strong> for your wishlist "<strong>{w}</strong>".</p>'
        f"<h3>Donation Details</h3><p><strong>Amount:</strong> {format_amount(amount)}</p>"
        f"<p><strong>Donor:</strong> {d}</p><p><strong>Wishlist:</strong> {w}</p>"
        f"<p>Thank you for using Gift for Cause!</p><p>Best regards,<br>{SIGNATURE}</p>"
    )
    return send_email(email, subject, text, html)

