from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session, declarative_base
from sqlalchemy.pool import StaticPool

from payrun.core.config import settings

Base = declarative_base()

def make_engine(db_url: str = None, echo: bool = False):
    url = db_url or settings.DB_URL
    # Use connect_args for SQLite to allow multithreading in simple dev setups
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    kwargs = {}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=echo, future=True, connect_args=connect_args, **kwargs)

def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def init_db(engine):
    # Import models here so they are registered on Base
    import payrun.db.models as _models  # noqa: F401
    Base.metadata.create_all(bind=engine)

_default_engine = None
_default_session = None

def get_session_factory():
    """Process-wide scoped session bound to ``settings.DB_URL``."""
    global _default_engine, _default_session
    if _default_session is None:
        _default_engine = make_engine()
        init_db(_default_engine)
        _default_session = scoped_session(make_session_factory(_default_engine))
    return _default_session
