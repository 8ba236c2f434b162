# gemini_chat/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from gemini_chat.exceptions import StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Storage handle: owns the engine and the session factory.

    Call init() once before use and close() when done.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = None
        self._session_factory = None

    def init(self) -> None:
        # import models so SQLAlchemy registers them
        import gemini_chat.models.conversation  # noqa: F401
        import gemini_chat.models.message  # noqa: F401

        try:
            self.engine = create_engine(self.url)
            if self.engine.dialect.name == "sqlite":
                event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
            # create all tables
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize database {self.url}: {e}") from e
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info("Database ready at %s", self.url)

    @contextmanager
    def session(self):
        """Yield a session that commits on success and rolls back on error."""
        if self._session_factory is None:
            raise StorageError("Database is not initialized")
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self._session_factory = None
