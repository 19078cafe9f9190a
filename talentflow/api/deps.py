"""FastAPI dependencies shared by the route modules.

Identity is resolved upstream (gateway / session layer) and arrives as
``X-User-Id`` and ``X-User-Role`` headers. Everything else is read from
``app.state``, where ``create_app()`` put it, so tests can build an app
with their own backend, analyzer and repositories.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from talentflow.analysis.gateway import AnalysisGateway
from talentflow.cache.backend import CacheBackend
from talentflow.cache.session import SessionCache
from talentflow.repositories import Repositories
from talentflow.telemetry.logging import bind_user_context

ADMIN_ROLES = frozenset({"admin", "superadmin"})


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CurrentUser:
    """Resolve the caller from identity headers. Raises HTTP 401 when absent."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    user = CurrentUser(id=x_user_id.strip(), role=(x_user_role or "user").strip().lower())
    bind_user_context(user.id, user.role)
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return user


def get_cache_backend(request: Request) -> CacheBackend:
    return request.app.state.cache_backend


def get_gateway(request: Request) -> AnalysisGateway:
    return request.app.state.analysis_gateway


def get_session_cache(request: Request) -> SessionCache:
    return request.app.state.session_cache


def get_repositories(request: Request) -> Repositories:
    return request.app.state.repositories
