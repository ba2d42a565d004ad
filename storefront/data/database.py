# storefront/data/database.py
import functools

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.utils.settings import DATABASE_URL, DATABASE_ECHO, SQLITE_LOCK_TIMEOUT

Base = declarative_base()


def _enable_sqlite_write_locks(engine: Engine) -> None:
    # sqlite has no SELECT ... FOR UPDATE; take the database write lock
    # when the transaction starts so stock read-check-write sequences
    # are serialized the same way a row lock serializes them elsewhere
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def ends_transaction(method):
    """
    Service-method decorator: commits whatever transaction the call leaves
    open (read-only ones included) or rolls it back on error.

    On sqlite every transaction holds the database write lock, so a session
    kept around after a plain read would block every other writer.
    Only for top-level calls: it commits the caller's pending work too.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        db = self.repo.db
        try:
            result = method(self, *args, **kwargs)
        except Exception:
            if db.in_transaction():
                db.rollback()
            raise
        if db.in_transaction():
            db.commit()
        return result

    return wrapper


def make_engine(url: str = DATABASE_URL, echo: bool = DATABASE_ECHO) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT},
        )
        _enable_sqlite_write_locks(engine)
        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = make_engine()
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = engine) -> None:
    # all models must be imported before create_all
    import storefront.data.models  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
