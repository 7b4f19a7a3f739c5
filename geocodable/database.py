"""
Database connection for geocodable

GEOCODABLE_DATABASE_URL selects the database (PostgreSQL by default).
The proximity query needs sin/cos/acos/least/greatest in SQL; PostgreSQL
has them built in.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "postgresql+psycopg2:///geocodable_db"
DATABASE_URL = os.getenv("GEOCODABLE_DATABASE_URL", DEFAULT_DATABASE_URL)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,        # Base connections to keep open
        "max_overflow": 20,     # Additional connections when busy
        "pool_recycle": 1800,   # Recycle connections after 30 min
        "pool_pre_ping": True,  # Handles dropped connections
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None):
    """Create the events, zips and settings tables if they don't exist"""
    import geocodable.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
