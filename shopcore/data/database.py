# shopcore/data/database.py
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shopcore.utils.settings import DATABASE_URL
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Base = declarative_base()


def build_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """
    Engine for the given url.

    SQLite gets its own transaction handling: pysqlite's implicit BEGIN breaks
    SAVEPOINTs, and a deferred BEGIN lets two writers deadlock on lock upgrade.
    Every transaction is opened with BEGIN IMMEDIATE so writers queue on the
    busy timeout instead.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True, **kwargs)

    connect_args = kwargs.pop("connect_args", {})
    connect_args.setdefault("check_same_thread", False)
    connect_args.setdefault("timeout", 30)
    engine = create_engine(url, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine | None = None) -> None:
    #models must be imported before create_all so they land in Base.metadata
    import shopcore.data.models  # noqa: F401

    target = bind or engine
    logger.info(f"Creating tables: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=target)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(db: Session, fn: Callable[[Session], T]) -> T:
    """
    Explicit unit of work: ``fn`` receives the session as its transaction
    scope, everything it writes is committed together or rolled back together.
    """
    try:
        result = fn(db)
        db.commit()
        return result
    except Exception as e:
        logger.warning(f"Transaction rolled back: {type(e).__name__}: {e}")
        db.rollback()
        raise
