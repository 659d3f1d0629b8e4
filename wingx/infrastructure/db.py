from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from wingx.core_settings import get_settings
from wingx.domain.models import Base

SessionLocal = sessionmaker(autoflush=False, autocommit=False, expire_on_commit=False)
_engine: Optional[Engine] = None

def init_engine(url: Optional[str] = None) -> Engine:
    global _engine
    url = url or get_settings().database_url
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    _engine = create_engine(url, echo=False, future=True, **kwargs)
    SessionLocal.configure(bind=_engine)
    return _engine

def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine

def get_db() -> Iterator[Session]:
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_models():
    Base.metadata.create_all(get_engine())
