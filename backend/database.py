from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session

import models  # noqa: F401  (registers tables on SQLModel.metadata)
from config import DatabaseConfig


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite manages transactions itself and breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(config: DatabaseConfig) -> Engine:
    if not config.url.startswith("sqlite"):
        return create_engine(config.url, echo=config.echo)

    # Sessions are used from FastAPI's threadpool
    kwargs = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(config.url):
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    engine = create_engine(config.url, echo=config.echo, **kwargs)
    _enable_sqlite_savepoints(engine)
    return engine


def create_db_and_tables(engine: Engine):
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
