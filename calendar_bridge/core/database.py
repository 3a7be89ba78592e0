# calendar_bridge/core/database.py
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Creates the SQLAlchemy engine for the given URL.

    SQLite connections are shared across FastAPI's worker threads, and an
    in-memory SQLite database has to live on a single connection or every
    session would see an empty schema.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    try:
        engine = create_engine(database_url, **kwargs)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}", exc_info=True)
        raise
    logger.info(f"Database engine created for dialect '{engine.dialect.name}'.")
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Checks connectivity and creates missing tables. Any failure here is fatal at startup."""
    # Models must be registered on Base.metadata before create_all
    from calendar_bridge.users import models as _user_models  # noqa: F401
    from calendar_bridge.calendar import models as _calendar_models  # noqa: F401

    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    logger.info("Successfully connected to the database.")
    Base.metadata.create_all(bind=engine)


def ping(session: Session) -> bool:
    try:
        session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return False


@contextmanager
def session_scope(session_factory: sessionmaker):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
