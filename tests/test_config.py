import logging

import pytest

import config


def test_defaults(monkeypatch):
    """Should fall back to the built-in defaults."""
    for name in ("SMTP_PORT", "STRIPE_PUBLISHABLE_KEY", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = config.get_config()

    assert cfg.smtp_port == 587
    assert cfg.strict_roles is False
    assert cfg.raised_amount_mode == "read_modify_write"
    assert cfg.mock_payment_success_rate == 0.9
    assert cfg.stripe_publishable_key == "pk_test_your_stripe_key"


def test_secrets_win_over_environment(monkeypatch):
    monkeypatch.setattr(config.st, "secrets", {"site_url": "https://from-secrets.test"})

    assert config.get_config().site_url == "https://from-secrets.test"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAILER_URL", "http://relay.test/")
    monkeypatch.setenv("STRICT_ROLES", "yes")
    monkeypatch.setenv("RAISED_AMOUNT_MODE", "atomic")

    cfg = config.get_config()

    assert cfg.mailer_url == "http://relay.test"
    assert cfg.strict_roles is True
    assert cfg.raised_amount_mode == "atomic"


def test_unknown_mode_falls_back(monkeypatch, caplog):
    monkeypatch.setenv("RAISED_AMOUNT_MODE", "eventually")

    with caplog.at_level(logging.WARNING, logger="config"):
        assert config.get_config().raised_amount_mode == "read_modify_write"
    assert "eventually" in caplog.text


@pytest.mark.parametrize(
    "value, expected",
    [(None, True), ("", True), ("pk_test_your_stripe_key", True), ("your_paypal_client_id", True), ("rzp_live_1", False)],
)
def test_is_placeholder(value, expected):
    assert config.is_placeholder(value) is expected


def test_warn_if_placeholders_logs_each_missing_setting(monkeypatch, caplog):
    """Should warn once per unset credential without raising."""
    monkeypatch.setenv("SMTP_USER", "relay@x.com")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("STRIPE_PUBLISHABLE_KEY", "pk_live_abc")

    with caplog.at_level(logging.WARNING, logger="config"):
        missing = config.warn_if_placeholders(config.get_config())

    assert missing == ["paypal_client_id", "razorpay_key_id"]
    assert caplog.text.count("Configuration missing") == 2


def test_get_db_path_creates_parent(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "nested" / "gift.db"))

    path = config.get_db_path()

    assert path.endswith("gift.db")
    assert (tmp_path / "nested").is_dir()


@pytest.mark.parametrize("level, expected", [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("chatty", logging.INFO)])
def test_configure_logging_sets_root_level(monkeypatch, level, expected):
    """Should map level names case-insensitively and fall back to INFO."""
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setattr(config, "_logging_configured", True)

    try:
        config.configure_logging(level)
        assert root.level == expected
    finally:
        root.setLevel(previous)
