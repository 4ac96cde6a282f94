from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from rental_engine.config import settings

database_url = settings.database_url


def _is_sqlite(url: str) -> bool:
    return str(url).strip().lower().startswith("sqlite")


# SQLite connections are used from Flask worker threads.
if _is_sqlite(database_url):
    engine = create_engine(
        database_url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        database_url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_recycle=3600,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db():
    """Context manager for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables on the given engine (defaults to the configured one)."""
    from rental_engine import models  # noqa: F401  # ensure models are registered

    Base.metadata.create_all(bind=bind or engine)
