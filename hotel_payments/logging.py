"""
One JSON object per log line.

Whatever a call site passes through ``extra=`` (booking_id, payment_id,
refund_id, ...) ends up as a top-level key, so refund and reconciliation
events can be searched by payment.
"""
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from hotel_payments.config import get_settings

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):

    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and value is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        # Decimal amounts and datetimes are written as strings.
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(settings=None):
    settings = settings or get_settings()
    formatter = JsonFormatter()

    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        ))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(settings.log_level)
    root.handlers = handlers
