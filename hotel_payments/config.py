import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Variables already in the environment win over the project .env file.
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env")


@dataclass(frozen=True)
class Settings:
    database_url: str
    razorpay_key_id: str
    razorpay_key_secret: str
    jwt_secret: str
    gateway_timeout_seconds: float = 15.0
    default_currency: str = "INR"
    database_echo: bool = False
    log_level: str = "INFO"
    log_file: str = ""
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5


def _flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """Read settings from the environment on every call so patched env vars apply."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    timeout = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))
    if timeout <= 0:
        raise RuntimeError("GATEWAY_TIMEOUT_SECONDS must be positive.")

    return Settings(
        database_url=database_url,
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID", ""),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET", ""),
        jwt_secret=os.getenv("JWT_SECRET", ""),
        gateway_timeout_seconds=timeout,
        default_currency=os.getenv("DEFAULT_CURRENCY", "INR"),
        database_echo=_flag("DATABASE_ECHO"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE", ""),
        log_max_bytes=int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024))),
        log_backup_count=int(os.getenv("LOG_BACKUP_COUNT", "5")),
    )
