# config.py
import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path

import streamlit as st

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKERS = ("placeholder", "your_", "your-", "pk_test_your")

DEFAULTS = {
    "db_path": "data/gift.db",
    "storage_dir": "data/storage",
    "storage_public_url": "/storage",
    "site_url": "http://localhost:8501",
    "mailer_url": "",
    "smtp_host": "smtp.gmail.com",
    "smtp_port": "587",
    "smtp_user": "",
    "smtp_password": "",
    "from_email": "",
    "stripe_publishable_key": "pk_test_your_stripe_key",
    "paypal_client_id": "your_paypal_client_id",
    "razorpay_key_id": "your_razorpay_key_id",
    "log_level": "INFO",
    "strict_roles": "false",
    "raised_amount_mode": "read_modify_write",
    "mock_payment_delay_seconds": "2",
    "mock_payment_success_rate": "0.9",
    "email_timeout_seconds": "15",
}


def get_setting(key, default=None):
    # prefer secrets, then the environment
    try:
        return str(st.secrets[key])
    except Exception:
        pass
    value = os.environ.get(key.upper())
    if value is not None:
        return value
    return default if default is not None else DEFAULTS.get(key)


def _as_bool(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    db_path: str
    storage_dir: str
    storage_public_url: str
    site_url: str
    mailer_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    from_email: str
    stripe_publishable_key: str
    paypal_client_id: str
    razorpay_key_id: str
    log_level: str
    strict_roles: bool
    raised_amount_mode: str
    mock_payment_delay_seconds: float
    mock_payment_success_rate: float
    email_timeout_seconds: float

    @property
    def sender(self) -> str:
        return self.from_email or self.smtp_user


def get_config() -> Config:
    """Builds a fresh Config from secrets, environment and defaults."""
    raw = {f.name: get_setting(f.name) for f in fields(Config)}
    raw["smtp_port"] = int(raw["smtp_port"])
    raw["strict_roles"] = _as_bool(raw["strict_roles"])
    raw["mock_payment_delay_seconds"] = float(raw["mock_payment_delay_seconds"])
    raw["mock_payment_success_rate"] = float(raw["mock_payment_success_rate"])
    raw["email_timeout_seconds"] = float(raw["email_timeout_seconds"])
    raw["mailer_url"] = raw["mailer_url"].rstrip("/")
    if raw["raised_amount_mode"] not in ("read_modify_write", "atomic"):
        logger.warning("Unknown raised_amount_mode %r, using read_modify_write", raw["raised_amount_mode"])
        raw["raised_amount_mode"] = "read_modify_write"
    return Config(**raw)


def get_db_path(config=None):
    p = (config or get_config()).db_path
    Path(p).parent.mkdir(parents=True, exist_ok=True)
    return p


def is_placeholder(value) -> bool:
    if not value:
        return True
    lowered = str(value).lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def warn_if_placeholders(config: Config):
    """Logs a warning for every external credential still on its placeholder.

    The app keeps running against the unreachable service; calls that need it
    fail later and are reported where they happen.
    """
    checked = [
        "mailer_url",
        "smtp_user",
        "smtp_password",
        "stripe_publishable_key",
        "paypal_client_id",
        "razorpay_key_id",
    ]
    missing = [name for name in checked if is_placeholder(getattr(config, name))]
    for name in missing:
        logger.warning("⚠️ Configuration missing: %s is not set (set %s in secrets or the environment)", name, name.upper())
    return missing


_logging_configured = False


def configure_logging(level="INFO"):
    global _logging_configured
    root = logging.getLogger()
    numeric = logging.getLevelName(str(level).upper())
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)
    if _logging_configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)
    _logging_configured = True
