"""SQLAlchemy-backed enrollment store.

Table layout::

    CREATE TABLE enrollments (
        id INTEGER PRIMARY KEY,
        external_id TEXT NOT NULL,      -- indexed, not unique
        display_name TEXT NOT NULL,
        embedding BLOB NOT NULL,        -- 4 * embedding_dim bytes
        embedding_dim INTEGER NOT NULL,
        image BLOB,
        created_at TIMESTAMP NOT NULL
    );
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, LargeBinary, Text, create_engine, delete, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from facematch.storage.store import EnrollmentRecord, NewEnrollment

logger = logging.getLogger(__name__)

Base = declarative_base()


class EnrollmentRow(Base):
    """ORM model for the enrollments table."""

    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Text, nullable=False, index=True)
    display_name = Column(Text, nullable=False)
    embedding = Column(LargeBinary, nullable=False)
    embedding_dim = Column(Integer, nullable=False)
    image = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<EnrollmentRow(id={self.id}, external_id='{self.external_id}')>"

    def to_record(self) -> EnrollmentRecord:
        return EnrollmentRecord(
            id=self.id,
            external_id=self.external_id,
            display_name=self.display_name,
            embedding=self.embedding,
            embedding_dim=self.embedding_dim,
            created_at=self.created_at,
            image=self.image,
        )


class SqlEnrollmentStore:
    """Enrollment store over any SQLAlchemy-supported database."""

    def __init__(self, database_url: str) -> None:
        url = make_url(database_url)
        engine_kwargs: dict[str, object] = {"pool_pre_ping": True}
        if url.get_backend_name() == "sqlite":
            # Calls arrive from the inference thread pool.
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool

        self._engine = create_engine(url, **engine_kwargs)
        self._session_maker = sessionmaker(self._engine, expire_on_commit=False)

    def init(self) -> None:
        """Create the schema if it does not exist."""
        Base.metadata.create_all(self._engine)
        logger.info("Enrollment schema ready (%s)", self._engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        """Dispose of the connection pool."""
        self._engine.dispose()
        logger.info("Enrollment store connection pool closed")

    def insert(self, enrollment: NewEnrollment) -> int:
        row = EnrollmentRow(
            external_id=enrollment.external_id,
            display_name=enrollment.display_name,
            embedding=enrollment.embedding,
            embedding_dim=enrollment.embedding_dim,
            image=enrollment.image,
            created_at=enrollment.created_at or datetime.now(UTC),
        )
        with self._session_maker() as session:
            session.add(row)
            session.commit()
            identity = row.id
        logger.info("Inserted record %s (external_id=%s)", identity, enrollment.external_id)
        return identity

    def all(self) -> list[EnrollmentRecord]:
        with self._session_maker() as session:
            rows = session.scalars(select(EnrollmentRow).order_by(EnrollmentRow.id)).all()
            return [row.to_record() for row in rows]

    def find_by_external_id(self, external_id: str) -> EnrollmentRecord | None:
        with self._session_maker() as session:
            row = session.scalars(
                select(EnrollmentRow).where(EnrollmentRow.external_id == external_id).order_by(EnrollmentRow.id)
            ).first()
            return row.to_record() if row is not None else None

    def get_by_id(self, identity: int) -> EnrollmentRecord | None:
        with self._session_maker() as session:
            row = session.get(EnrollmentRow, identity)
            return row.to_record() if row is not None else None

    def delete_by_id(self, identity: int) -> None:
        with self._session_maker() as session:
            result = session.execute(delete(EnrollmentRow).where(EnrollmentRow.id == identity))
            session.commit()
        if result.rowcount > 0:
            logger.info("Deleted record %s", identity)

    def count(self) -> int:
        with self._session_maker() as session:
            return session.scalar(select(func.count(EnrollmentRow.id))) or 0
