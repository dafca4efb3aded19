from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from wishlist.config import Settings

Base = declarative_base()


def make_engine(settings: Settings) -> Engine:
    db_path = settings.db_path
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if settings.db_url.endswith(":memory:"):
        # one shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    return create_engine(settings.db_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    from wishlist import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
