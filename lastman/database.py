"""
Engine and session wiring.

Configuration comes from the environment (a local .env is honoured):

    DATABASE_URL  SQLAlchemy URL, default sqlite:///./lastman.db
    SQL_ECHO      true/1/yes to log every statement

Request handlers get a Session through the get_session dependency; the
services never open sessions themselves.
"""

import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./lastman.db"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("true", "1", "yes")


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create the engine; for a file-backed SQLite URL the parent directory is created first."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if ":memory:" not in url:
            Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, connect_args=connect_args)


DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
engine: Engine = build_engine(DATABASE_URL, echo=_env_flag("SQL_ECHO"))


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Create any missing tables for every model in lastman.models."""
    import lastman.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
