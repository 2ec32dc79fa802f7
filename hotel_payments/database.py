from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from hotel_payments.config import get_settings


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Route handlers run in FastAPI's threadpool and share the connection.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def make_engine(settings=None):
    settings = settings or get_settings()
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        **engine_options(settings.database_url),
    )


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()
