# wipflow/database.py

from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import settings


def build_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Reports run on FastAPI's threadpool, not the thread that opened the connection.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


engine = build_engine(settings.database_url, echo=settings.sql_echo)


def create_db_and_tables(bind: Engine = None) -> None:
    # Importing the models registers every table on SQLModel.metadata.
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def new_session(bind: Engine = None) -> Session:
    """
    Sessions keep loaded attributes after commit so that services can
    hand committed entities back to callers once the session is closed.
    """
    return Session(bind or engine, expire_on_commit=False)


def get_session() -> Iterator[Session]:
    with new_session() as session:
        yield session
