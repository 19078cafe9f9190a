"""Analytics API endpoints.

GET /api/analytics/dashboard  - Organisation-wide aggregates (HTTP cached, 2h)

The dashboard is expensive in a real store (several COUNT queries) and
changes only when batches or tickets change; both of those routes evict
``api:/api/analytics*`` on success.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from talentflow.api.deps import CurrentUser, get_current_user, get_repositories
from talentflow.repositories import BatchStatus, Repositories, TicketStatus

router = APIRouter(prefix="/analytics", tags=["analytics"])


class DashboardResponse(BaseModel):
    total_batches: int
    completed_batches: int
    total_candidates: int
    total_tickets: int
    open_tickets: int
    tickets_by_priority: dict[str, int]
    generated_at: datetime


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> Any:
    batches = await repos.batches.list_all()
    tickets = await repos.tickets.list_all()
    return DashboardResponse(
        total_batches=len(batches),
        completed_batches=sum(1 for b in batches if b.status == BatchStatus.COMPLETED),
        total_candidates=sum(b.candidate_count for b in batches),
        total_tickets=len(tickets),
        open_tickets=sum(1 for t in tickets if t.status == TicketStatus.OPEN),
        tickets_by_priority=dict(Counter(str(t.priority) for t in tickets)),
        generated_at=datetime.now(UTC),
    )
