"""Support ticket endpoints.

POST   /api/support/tickets        - Open a ticket (201)
GET    /api/support/tickets        - All tickets, optional ?status= filter (HTTP cached)
GET    /api/support/my-tickets     - The caller's tickets (never cached)
GET    /api/support/tickets/{id}   - One ticket (HTTP cached)
PUT    /api/support/tickets/{id}   - Update a ticket (owner or admin)
DELETE /api/support/tickets/{id}   - Delete a ticket (owner or admin)

Mutations evict ``api:/api/support*`` and the analytics aggregates.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from talentflow.api.deps import CurrentUser, get_current_user, get_repositories
from talentflow.repositories import Repositories, Ticket, TicketPriority, TicketStatus

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/support", tags=["support"])


class CreateTicketRequest(BaseModel):
    subject: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: str = Field(default="general", max_length=50)


class UpdateTicketRequest(BaseModel):
    subject: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    priority: TicketPriority | None = None
    status: TicketStatus | None = None


async def _owned_ticket(ticket_id: str, user: CurrentUser, repos: Repositories) -> Ticket:
    ticket = await repos.tickets.get(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    if ticket.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your ticket")
    return ticket


@router.post("/tickets", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    body: CreateTicketRequest,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    ticket = await repos.tickets.create(Ticket(user_id=user.id, **body.model_dump()))
    log.info("support.ticket_created", ticket_id=ticket.id, priority=ticket.priority)
    return {"success": True, "data": ticket.to_dict()}


@router.get("/tickets")
async def list_tickets(
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    tickets = await repos.tickets.list_all(status=status_filter)
    return {"success": True, "data": [t.to_dict() for t in tickets], "total": len(tickets)}


@router.get("/my-tickets")
async def my_tickets(
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    tickets = await repos.tickets.list_all(user_id=user.id)
    return {"success": True, "data": [t.to_dict() for t in tickets], "total": len(tickets)}


@router.get("/tickets/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    ticket = await repos.tickets.get(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return {"success": True, "data": ticket.to_dict()}


@router.put("/tickets/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    body: UpdateTicketRequest,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    await _owned_ticket(ticket_id, user, repos)
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")
    ticket = await repos.tickets.update(ticket_id, **changes)
    log.info("support.ticket_updated", ticket_id=ticket_id, fields=sorted(changes))
    return {"success": True, "data": ticket.to_dict() if ticket else None}


@router.delete("/tickets/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
) -> dict[str, Any]:
    await _owned_ticket(ticket_id, user, repos)
    await repos.tickets.delete(ticket_id)
    log.info("support.ticket_deleted", ticket_id=ticket_id)
    return {"success": True, "message": "Ticket deleted"}
