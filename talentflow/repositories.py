"""In-memory stand-ins for the relational store.

Routes depend on the ``*Repository`` protocols only. The in-memory
implementations hold rows in dicts for the lifetime of the process and
are what ``create_app()`` wires in by default; a database-backed
implementation would satisfy the same protocols.

These are records, not caches: nothing here expires.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol


def _now() -> datetime:
    return datetime.now(UTC)


class BatchStatus(StrEnum):
    CREATED = "created"
    PROCESSING = "processing"
    COMPLETED = "completed"


class TicketStatus(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Batch:
    name: str
    user_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BatchStatus = BatchStatus.CREATED
    cv_count: int = 0
    candidate_count: int = 0
    job_title: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Candidate:
    batch_id: str
    filename: str
    name: str
    email: str
    phone: str
    score: int
    recommendation: str
    skills_matched: list[str]
    skills_missing: list[str]
    experience_years: int
    analysis: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    rank: int | None = None
    ranking_reason: str | None = None
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Ticket:
    user_id: str
    subject: str
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    category: str = "general"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TicketStatus = TicketStatus.OPEN
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserProfile:
    user_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: str = "user"
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class BatchRepository(Protocol):
    async def create(self, name: str, user_id: str) -> Batch: ...
    async def get(self, batch_id: str) -> Batch | None: ...
    async def list_all(self) -> list[Batch]: ...
    async def update(self, batch_id: str, **changes: Any) -> Batch | None: ...


class CandidateRepository(Protocol):
    async def add(self, candidate: Candidate) -> Candidate: ...
    async def list_for_batch(self, batch_id: str) -> list[Candidate]: ...
    async def update(self, candidate_id: str, **changes: Any) -> Candidate | None: ...


class TicketRepository(Protocol):
    async def create(self, ticket: Ticket) -> Ticket: ...
    async def get(self, ticket_id: str) -> Ticket | None: ...
    async def list_all(
        self, user_id: str | None = None, status: str | None = None
    ) -> list[Ticket]: ...
    async def update(self, ticket_id: str, **changes: Any) -> Ticket | None: ...
    async def delete(self, ticket_id: str) -> bool: ...


class UserRepository(Protocol):
    async def get(self, user_id: str) -> UserProfile | None: ...
    async def upsert(self, profile: UserProfile) -> UserProfile: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


def _apply(record: Any, changes: dict[str, Any]) -> Any:
    for name, value in changes.items():
        if not hasattr(record, name):
            raise AttributeError(f"{type(record).__name__} has no field {name!r}")
        setattr(record, name, value)
    if hasattr(record, "updated_at"):
        record.updated_at = _now()
    return record


class InMemoryBatchRepository:
    def __init__(self) -> None:
        self._rows: dict[str, Batch] = {}

    async def create(self, name: str, user_id: str) -> Batch:
        batch = Batch(name=name, user_id=user_id)
        self._rows[batch.id] = batch
        return batch

    async def get(self, batch_id: str) -> Batch | None:
        return self._rows.get(batch_id)

    async def list_all(self) -> list[Batch]:
        return sorted(self._rows.values(), key=lambda b: b.created_at, reverse=True)

    async def update(self, batch_id: str, **changes: Any) -> Batch | None:
        batch = self._rows.get(batch_id)
        return _apply(batch, changes) if batch else None


class InMemoryCandidateRepository:
    def __init__(self) -> None:
        self._rows: dict[str, Candidate] = {}

    async def add(self, candidate: Candidate) -> Candidate:
        self._rows[candidate.id] = candidate
        return candidate

    async def list_for_batch(self, batch_id: str) -> list[Candidate]:
        rows = [c for c in self._rows.values() if c.batch_id == batch_id]
        return sorted(rows, key=lambda c: (c.rank is None, c.rank or 0, -c.score))

    async def update(self, candidate_id: str, **changes: Any) -> Candidate | None:
        candidate = self._rows.get(candidate_id)
        return _apply(candidate, changes) if candidate else None


class InMemoryTicketRepository:
    def __init__(self) -> None:
        self._rows: dict[str, Ticket] = {}

    async def create(self, ticket: Ticket) -> Ticket:
        self._rows[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        return self._rows.get(ticket_id)

    async def list_all(
        self, user_id: str | None = None, status: str | None = None
    ) -> list[Ticket]:
        rows = [
            t
            for t in self._rows.values()
            if (user_id is None or t.user_id == user_id) and (status is None or t.status == status)
        ]
        return sorted(rows, key=lambda t: t.created_at, reverse=True)

    async def update(self, ticket_id: str, **changes: Any) -> Ticket | None:
        ticket = self._rows.get(ticket_id)
        return _apply(ticket, changes) if ticket else None

    async def delete(self, ticket_id: str) -> bool:
        return self._rows.pop(ticket_id, None) is not None


class InMemoryUserRepository:
    def __init__(self) -> None:
        self._rows: dict[str, UserProfile] = {}
        self.reads = 0

    async def get(self, user_id: str) -> UserProfile | None:
        self.reads += 1
        return self._rows.get(user_id)

    async def upsert(self, profile: UserProfile) -> UserProfile:
        profile.updated_at = _now()
        self._rows[profile.user_id] = profile
        return profile


@dataclass
class Repositories:
    batches: BatchRepository = field(default_factory=InMemoryBatchRepository)
    candidates: CandidateRepository = field(default_factory=InMemoryCandidateRepository)
    tickets: TicketRepository = field(default_factory=InMemoryTicketRepository)
    users: UserRepository = field(default_factory=InMemoryUserRepository)
