import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

DB_URL = os.getenv("DB_URL", "sqlite:///./data/alerts.db")


def make_session_factory(db_url: str = DB_URL):
    """Engine + session factory for the given database URL."""
    if db_url.startswith("sqlite:///") and not db_url.startswith("sqlite:///:memory:"):
        db_dir = os.path.dirname(db_url[len("sqlite:///"):])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    engine = create_engine(db_url, echo=False, future=True)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
