"""Enrollment store interface and an in-memory implementation.

The store owns the internal record identity. It does not enforce
uniqueness of the external identifier; the recognition service checks
that before inserting.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewEnrollment:
    """A record that has not been assigned an identity yet."""

    external_id: str
    display_name: str
    embedding: bytes
    embedding_dim: int
    image: bytes | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class EnrollmentRecord:
    """A persisted enrollment. ``embedding`` holds the encoded vector."""

    id: int
    external_id: str
    display_name: str
    embedding: bytes
    embedding_dim: int
    created_at: datetime
    image: bytes | None = None


class EnrollmentStore(Protocol):
    """Protocol for enrollment persistence."""

    def insert(self, enrollment: NewEnrollment) -> int:
        """Persist a new record and return its identity."""
        ...

    def all(self) -> list[EnrollmentRecord]:
        """Return a snapshot of every record, in insertion order."""
        ...

    def find_by_external_id(self, external_id: str) -> EnrollmentRecord | None:
        """Return the first record with the given external identifier."""
        ...

    def get_by_id(self, identity: int) -> EnrollmentRecord | None:
        """Return the record with the given identity."""
        ...

    def delete_by_id(self, identity: int) -> None:
        """Delete a record. Unknown identities are ignored."""
        ...

    def count(self) -> int:
        """Return the number of records."""
        ...


class InMemoryEnrollmentStore:
    """Thread-safe dictionary-backed store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[int, EnrollmentRecord] = {}
        self._next_id = 1

    def insert(self, enrollment: NewEnrollment) -> int:
        with self._lock:
            identity = self._next_id
            self._next_id += 1
            self._records[identity] = EnrollmentRecord(
                id=identity,
                external_id=enrollment.external_id,
                display_name=enrollment.display_name,
                embedding=enrollment.embedding,
                embedding_dim=enrollment.embedding_dim,
                created_at=enrollment.created_at or datetime.now(UTC),
                image=enrollment.image,
            )
        logger.info("Inserted record %s (external_id=%s)", identity, enrollment.external_id)
        return identity

    def all(self) -> list[EnrollmentRecord]:
        with self._lock:
            return list(self._records.values())

    def find_by_external_id(self, external_id: str) -> EnrollmentRecord | None:
        with self._lock:
            return next((r for r in self._records.values() if r.external_id == external_id), None)

    def get_by_id(self, identity: int) -> EnrollmentRecord | None:
        with self._lock:
            return self._records.get(identity)

    def delete_by_id(self, identity: int) -> None:
        with self._lock:
            removed = self._records.pop(identity, None)
        if removed is not None:
            logger.info("Deleted record %s", identity)

    def count(self) -> int:
        with self._lock:
            return len(self._records)
