import json
import logging
from decimal import Decimal

import pytest

from hotel_payments.config import get_settings
from hotel_payments.database import engine_options
from hotel_payments.logging import JsonFormatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DATABASE_ECHO", "true")

    settings = get_settings()

    assert settings.database_url == "sqlite://"
    assert settings.gateway_timeout_seconds == 2.5
    assert settings.log_level == "DEBUG"
    assert settings.database_echo is True
    assert settings.default_currency == "INR"


def test_settings_require_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL")

    with pytest.raises(RuntimeError):
        get_settings()


def test_settings_reject_non_positive_timeout(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "0")

    with pytest.raises(RuntimeError):
        get_settings()


def test_engine_options_per_backend():
    assert engine_options("sqlite:///./x.db") == {"connect_args": {"check_same_thread": False}}
    assert engine_options("postgresql://u:p@db/payments") == {"pool_pre_ping": True}


def test_json_formatter_lifts_extra_fields():
    logger = logging.getLogger("hotel_payments.test")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "refund_issued", None, None,
        extra={"payment_id": "pay_1", "amount": Decimal("14.95"), "refund_id": None},
    )

    entry = json.loads(JsonFormatter().format(record))

    assert entry["event"] == "refund_issued"
    assert entry["level"] == "INFO"
    assert entry["payment_id"] == "pay_1"
    assert entry["amount"] == "14.95"
    assert "refund_id" not in entry
    assert "lineno" not in entry


def test_configure_logging_writes_log_file(monkeypatch, tmp_path, restore_root_logger):
    log_file = tmp_path / "payments.log"
    monkeypatch.setenv("LOG_FILE", str(log_file))

    configure_logging()
    logging.getLogger("hotel_payments.refunds").warning("refund_missing_locally", extra={"booking_id": "b1"})
    for handler in logging.getLogger().handlers:
        handler.flush()

    line = json.loads(log_file.read_text().splitlines()[-1])
    assert line["event"] == "refund_missing_locally"
    assert line["booking_id"] == "b1"
