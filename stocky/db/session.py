"""Database handle injected into every component.

Invariants:
    - transaction() commits on clean exit and rolls back on any exception, so
      no partially applied unit of work is ever visible
    - SQLAlchemy exceptions escaping a session surface as StorageFailureError
    - domain errors (StockyError) raised inside a transaction pass through
      unchanged after the rollback
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, select, text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..accounts import INITIAL_ACCOUNTS
from ..errors import StockyError, StorageFailureError
from .base import Base
from .tables import Account

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    def __init__(self, database_url: str, echo: bool = False):
        kwargs = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if _is_memory_sqlite(database_url):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pool_pre_ping=True, pool_recycle=3600)

        self.url = database_url
        self.engine = create_engine(database_url, echo=echo, **kwargs)
        if self.dialect == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)
        self._seed_accounts()
        logger.info("Database schema ready")

    def _seed_accounts(self) -> None:
        with self.transaction() as session:
            existing = set(session.scalars(select(Account.id)))
            for account_id, name, kind in INITIAL_ACCOUNTS:
                if account_id not in existing:
                    session.add(Account(id=account_id, name=name, kind=kind.value))

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session. Nothing is committed."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"DB read failed: {e}")
            raise StorageFailureError("Database read failed") from e
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """All-or-nothing unit of work."""
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except StockyError:
            raise
        except IntegrityError as e:
            logger.error(f"DB integrity error: {e}")
            raise StorageFailureError("Integrity constraint violated") from e
        except OperationalError as e:
            logger.error(f"DB operational error: {e}")
            raise StorageFailureError("Connection or operational error") from e
        except SQLAlchemyError as e:
            logger.error(f"SQLAlchemy error: {e}")
            raise StorageFailureError("Database operation failed") from e
        finally:
            session.close()

    def health_check(self) -> bool:
        try:
            with self.session() as session:
                session.execute(text("SELECT 1"))
            return True
        except StorageFailureError:
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def is_unique_violation(exc: IntegrityError, column: str) -> bool:
    """True when the integrity error was raised by a UNIQUE index on ``column``."""
    message = str(exc.orig).lower()
    return column in message and ("unique" in message or "duplicate" in message)
