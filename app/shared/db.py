import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the engine and session factory for one application instance.

    Created once by create_app(), kept on app.state.db and disposed when the
    app shuts down.
    """

    def __init__(self, url: str):
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.url = url
        self.engine: Engine = create_engine(url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)

    def create_all(self) -> None:
        # import models so they register with Base.metadata
        from app.auth import models as auth_models  # noqa: F401
        from app.users import models as users_models  # noqa: F401
        from app.issues import models as issues_models  # noqa: F401
        from app.timeline import models as timeline_models  # noqa: F401
        from app.payments import models as payments_models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        logger.info("disposing database engine")
        self.engine.dispose()


# FastAPI dep
def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
