from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SessionLocal = sessionmaker(expire_on_commit=False)


def init_engine(database_uri: str) -> Engine:
    """Create the engine and bind SessionLocal to it."""
    kwargs: dict = {}
    if database_uri.startswith("sqlite"):
        # Cycles for different services commit from different threads.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_uri:
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_uri, **kwargs)
    SessionLocal.configure(bind=engine)
    return engine
