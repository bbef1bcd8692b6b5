"""Engine, session factory and the transaction helper used by every mutating service."""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.errors import ConcurrentModification
from backend.app.core.settings import get_settings

settings = get_settings()

connect_args = {}
if settings.database_url.startswith("sqlite"):
    # TestClient and the race tests touch the engine from worker threads
    connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(settings.database_url, connect_args=connect_args, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Run a read-modify-write unit: commit once on success, roll back on any failure.

    Optimistic-lock conflicts surface as ConcurrentModification.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentModification() from exc
    except Exception:
        db.rollback()
        raise
