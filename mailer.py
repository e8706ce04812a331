# mailer.py
"""Email relay: a tiny FastAPI app that turns JSON posts into SMTP mail.

Run with `uvicorn mailer:app --port 3000` (or `python mailer.py`) and point
MAILER_URL at it.
"""
import datetime
import logging
import random
import smtplib
from email.message import EmailMessage

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

import db
from config import configure_logging, get_config

logger = logging.getLogger(__name__)

OTP_TTL_MINUTES = 5

app = FastAPI(title="Gift for Cause mailer")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
)


def send_smtp(to, subject, text, html=None):
    """Sends one message through the configured SMTP server (STARTTLS)."""
    config = get_config()
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = config.sender
    msg["To"] = to
    msg.set_content(text or "")
    if html:
        msg.add_alternative(html, subtype="html")

    server = smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30)
    try:
        server.starttls()
        if config.smtp_user:
            server.login(config.smtp_user, config.smtp_password)
        server.send_message(msg)
    finally:
        server.quit()


async def _json_body(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@app.options("/send-email")
def send_email_options():
    return Response(status_code=200)


@app.post("/send-email")
async def send_email(request: Request):
    body = await _json_body(request)
    to, subject = body.get("to"), body.get("subject")
    if not to or not subject:
        return JSONResponse(status_code=400, content={"error": "Missing required fields: to, subject"})
    try:
        send_smtp(to, subject, body.get("text"), body.get("html"))
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error sending email to %s: %s", to, e)
        return JSONResponse(status_code=500, content={"error": f"Failed to send email: {e}"})
    logger.info("Email sent to %s", to)
    return {"message": "Email sent successfully"}


def generate_otp(rng=None):
    rng = rng or random.SystemRandom()
    return str(rng.randint(100000, 999999))


@app.options("/api/send-otp")
def send_otp_options():
    return Response(status_code=200)


@app.post("/api/send-otp")
async def send_otp(request: Request):
    body = await _json_body(request)
    email = body.get("email")
    if not email:
        return JSONResponse(status_code=400, content={"error": "Email is required"})

    otp = generate_otp()
    expires_at = (datetime.datetime.utcnow() + datetime.timedelta(minutes=OTP_TTL_MINUTES)).isoformat()
    try:
        db.create_otp(email, otp, expires_at)
    except Exception as e:
        logger.error("Error inserting OTP: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to save OTP in database"})

    try:
        send_smtp(
            email,
            "Your OTP Code",
            f"Your OTP is {otp}. It expires in {OTP_TTL_MINUTES} minutes.",
            f"<h2>Your OTP is {otp}</h2><p>It will expire in {OTP_TTL_MINUTES} minutes.</p>",
        )
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error sending OTP: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to send OTP"})
    logger.debug("OTP sent to %s", email)
    return {"message": "OTP sent successfully"}


if __name__ == "__main__":
    import uvicorn

    configure_logging(get_config().log_level)
    uvicorn.run(app, host="0.0.0.0", port=3000)
