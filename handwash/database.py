"""Database connection and initialization."""

from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, Session, create_engine

from handwash.config import settings
from handwash.store import KeyValueStore

# Import all models so SQLModel registers them
import handwash.models  # noqa: F401

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=settings.debug,
    # Requests and the reminder thread write concurrently
    connect_args={"check_same_thread": False, "timeout": 30},
)


def init_db() -> None:
    """Create the records table and enable WAL mode."""
    SQLModel.metadata.create_all(engine)

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL")
        conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
        conn.commit()


def get_session():
    """FastAPI dependency: yields a database session."""
    with Session(engine) as session:
        yield session


@contextmanager
def store_scope() -> Iterator[KeyValueStore]:
    """Store on its own session, for work outside a request."""
    with Session(engine) as session:
        yield KeyValueStore(session)
