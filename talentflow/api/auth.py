"""Profile endpoints backed by the session snapshot cache.

GET /api/auth/profile  - Caller's profile (read-through session cache)
PUT /api/auth/profile  - Update the caller's profile, then drop the snapshot

These paths are on the HTTP cache skip-list: a path-only key would hand
one user's profile to the next caller. The session cache is keyed by
user id instead.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Response
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from talentflow.api.deps import (
    CurrentUser,
    get_current_user,
    get_repositories,
    get_session_cache,
)
from talentflow.cache.session import SessionCache
from talentflow.repositories import Repositories, UserProfile

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_HEADER = "X-Session-Cache"


class UpdateProfileRequest(BaseModel):
    email: str | None = Field(default=None, max_length=254)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


@router.get("/profile")
async def get_profile(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
    sessions: SessionCache = Depends(get_session_cache),
) -> dict[str, Any]:
    snapshot = await sessions.get(user.id)
    if snapshot is not None:
        response.headers[SESSION_HEADER] = "HIT"
        return {"success": True, "data": snapshot}

    profile = await repos.users.get(user.id)
    if profile is None:
        profile = await repos.users.upsert(UserProfile(user_id=user.id, role=user.role))

    data = jsonable_encoder(profile.to_dict())
    await sessions.store(user.id, data)
    response.headers[SESSION_HEADER] = "MISS"
    return {"success": True, "data": data}


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
    sessions: SessionCache = Depends(get_session_cache),
) -> dict[str, Any]:
    profile = await repos.users.get(user.id) or UserProfile(user_id=user.id, role=user.role)
    for name, value in body.model_dump(exclude_none=True).items():
        setattr(profile, name, value)
    profile = await repos.users.upsert(profile)

    if not await sessions.invalidate(user.id):
        log.warning("auth.profile.session_invalidate_failed", user_id=user.id)
    return {"success": True, "data": profile.to_dict()}
