"""SQLAlchemy-backed state store."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, String, create_engine, select
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, sessionmaker

from .base import StateStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class StateRecord(Base):
    """One persisted cleanup record (catalog or checkpoint)."""

    __tablename__ = "cleanup_state"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<StateRecord(key={self.key})>"


class SqlStore(StateStore):
    """Stores cleanup records in a relational database.

    Example:
        >>> store = SqlStore("sqlite:///cleanup_state.db")
        >>> store.put("checkpoint/Trip", {"orderedGroupIds": ["g1"], "index": 2})
    """

    def __init__(self, url: str, echo: bool = False):
        """
        Initialize the store and create the table if needed.

        Args:
            url: SQLAlchemy database URL
            echo: Log all SQL statements
        """
        self.url = url
        self.engine = create_engine(url, pool_pre_ping=True, echo=echo)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Connected to cleanup state database: {self.engine.url}")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            record = session.get(StateRecord, key)
            return dict(record.value) if record is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._session_factory() as session:
            session.merge(
                StateRecord(key=key, value=value, updated_at=datetime.utcnow())
            )
            session.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as session:
            record = session.get(StateRecord, key)
            if record is not None:
                session.delete(record)
                session.commit()

    def keys(self, prefix: str = "") -> List[str]:
        with self._session_factory() as session:
            stmt = select(StateRecord.key).where(
                StateRecord.key.startswith(prefix, autoescape=True)
            )
            return sorted(session.scalars(stmt).all())

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("Closed cleanup state database")

    def __repr__(self) -> str:
        return f"SqlStore(url={self.engine.url})"
