from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from shortlinks.config import Settings

Base = declarative_base()


def utcnow() -> datetime:
    # Stored timestamps are naive UTC so SQLite and server backends compare alike
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_db_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}  # needed for SQLite + FastAPI
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every session sees an empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_tables(engine: Engine) -> None:
    from shortlinks import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)
