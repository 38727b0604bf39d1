from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.models.base import Base

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


class Database:
    """Owns the engine and session factory for one application instance.

    Created by ``create_app`` and stored on ``app.state.db``; disposed when the
    application shuts down.
    """

    def __init__(self, url: str, echo: bool = False):
        kwargs = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in _MEMORY_URLS:
                # one shared connection, otherwise every session sees an empty db
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        self.url = url
        self.engine = create_engine(url, echo=echo, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

    def create_all(self) -> None:
        # model modules must be imported so their tables are on the metadata
        from marketplace.models import blog, membership, property, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
