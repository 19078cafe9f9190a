"""Telemetry package: structured logging and request correlation."""

from __future__ import annotations

from talentflow.telemetry.logging import (
    RequestIdMiddleware,
    bind_user_context,
    configure_logging,
    redact_secrets,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_user_context",
    "configure_logging",
    "redact_secrets",
]
