import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings
from errors import ConflictError, StorageError, StoreError


logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    database_url = database_url or get_settings().database_url
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    eng = create_engine(database_url, connect_args=connect_args)
    if database_url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def dialect_insert(session: Session):
    """Dialect `insert` construct, for ON CONFLICT upserts."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise StorageError(f"Upserts are not supported on {dialect}")


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """One unit of work.

    Commits exactly once when the block exits normally and rolls back on
    every other exit. Backend errors come out as ``ConflictError`` for
    uniqueness violations and ``StorageError`` for everything else.
    """
    session: Session = factory()
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning(f"unit_of_work_rollback: reason=integrity error={exc.orig}")
        raise ConflictError("Row conflicts with an existing record") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning(f"unit_of_work_rollback: reason=backend error={exc}")
        raise StorageError("Storage backend failure") from exc
    except StoreError:
        session.rollback()
        raise
    except BaseException:
        session.rollback()
        logger.warning("unit_of_work_rollback: reason=unexpected")
        raise
    finally:
        session.close()
