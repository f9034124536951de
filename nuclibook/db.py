from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL, SQL_ECHO
from .errors import ConstraintViolation, StoreUnavailable


def _make_engine(url: str, echo: bool = False) -> Engine:
    kwargs: dict = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        # TestClient e Streamlit usano thread diversi
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
    new_engine = create_engine(url, **kwargs)

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = _make_engine(DATABASE_URL, echo=SQL_ECHO)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base ORM per tutti i modelli."""
    pass


def configure_engine(url: str, echo: bool = False) -> Engine:
    """Sostituisce l'engine globale (es. SQLite in memoria nei test)."""
    global engine
    engine = _make_engine(url, echo=echo)
    SessionLocal.configure(bind=engine)
    return engine


def get_engine() -> Engine:
    return engine


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Context manager per gestire correttamente la sessione:
    - commit se tutto ok
    - rollback su eccezioni (errori SQLAlchemy tradotti in errori di dominio)
    - close sempre
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConstraintViolation(str(e.orig)) from e
    except OperationalError as e:
        session.rollback()
        raise StoreUnavailable(str(e.orig)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
