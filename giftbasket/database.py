from typing import Dict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

def _normalize_db_url(url: str) -> str:
    # Use psycopg v3 driver with SQLAlchemy
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    return url

_engines: Dict[str, Engine] = {}  # lazy, one per URL
_sessionmakers: Dict[str, sessionmaker] = {}

def get_engine(url: str) -> Engine:
    url = _normalize_db_url(url)
    if url not in _engines:
        kwargs = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            # request threads share the connection pool
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
                kwargs["poolclass"] = StaticPool
        _engines[url] = create_engine(url, **kwargs)
    return _engines[url]

def get_sessionmaker(url: str) -> sessionmaker:
    url = _normalize_db_url(url)
    if url not in _sessionmakers:
        _sessionmakers[url] = sessionmaker(
            bind=get_engine(url),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _sessionmakers[url]

class Base(DeclarativeBase):
    pass

def create_tables(url: str) -> None:
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=get_engine(url))

