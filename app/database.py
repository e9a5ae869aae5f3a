import logging

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets serialized write transactions."""
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(database_url, echo=False, connect_args=connect_args)

    if is_sqlite:
        # pysqlite's own BEGIN handling defers locking; take the write lock
        # up front so check-then-insert cannot interleave.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, _connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.info(f"Database engine created ({engine.dialect.name})")
    return engine


engine = build_engine(get_settings().database_url)


def _install_overlap_constraint(bind: Engine, occupying_statuses) -> None:
    statuses = ", ".join(f"'{s}'" for s in sorted(occupying_statuses))
    with bind.begin() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        exists = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = 'appointment_no_overlap'")
        ).first()
        if exists:
            return
        conn.execute(
            text(
                "ALTER TABLE appointment ADD CONSTRAINT appointment_no_overlap "
                "EXCLUDE USING gist ("
                "specialist_id WITH =, "
                "tsrange(start_time, start_time + duration_minutes * interval '1 minute') WITH &&"
                f") WHERE (status IN ({statuses}))"
            )
        )
    logger.info("Installed appointment_no_overlap exclusion constraint")


def create_db_and_tables(bind: Engine = engine) -> None:
    # register tables on the metadata
    from app.models import appointment, service, specialist, user  # noqa: F401

    SQLModel.metadata.create_all(bind)

    if bind.dialect.name == "postgresql":
        _install_overlap_constraint(bind, get_settings().occupying_statuses)


def get_session():
    with Session(engine) as session:
        yield session
