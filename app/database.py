import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "postgresql://localhost/timeledger"

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

DATABASE_URL = ""
engine = None


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # request handlers run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def configure_database() -> None:
    """(Re)bind SessionLocal when DATABASE_URL changed since the last call."""
    global DATABASE_URL, engine

    database_url = get_database_url()
    if engine is not None and DATABASE_URL == database_url:
        return

    engine = create_engine(database_url, **engine_options(database_url))
    SessionLocal.configure(bind=engine)
    DATABASE_URL = database_url


configure_database()
