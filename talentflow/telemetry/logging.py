"""Structured logging configuration.

Configures structlog with JSON output in production and a Rich console
renderer in development, masks credentials that redis and litellm echo
into error messages, and propagates request ids.

Log format (production):
    {
        "timestamp": "2026-02-17T10:30:45.123456Z",
        "level": "info",
        "event": "analysis.completed",
        "request_id": "req_789...",
        "user_id": "42",
        "operation": "cv_analysis",
        "provenance": "external"
    }
"""

from __future__ import annotations

import logging
import re
import sys
import uuid
from typing import Any

import structlog
from structlog.types import EventDict, Processor

REQUEST_ID_HEADER = b"x-request-id"

# Loggers that chatter at INFO on every LLM or Redis call
NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore")

_URL_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/\s:@]*:[^/\s@]+@", re.IGNORECASE)
_API_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_-]{6,}")
REDACTED = "***"


def _redact(value: str) -> str:
    value = _URL_CREDENTIALS_RE.sub(rf"\g<scheme>{REDACTED}@", value)
    return _API_KEY_RE.sub(f"sk-{REDACTED}", value)


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask Redis URL passwords and LLM API keys in string log fields.

    Transport errors from redis and litellm echo the URL or key they were
    given, and those messages end up in ``error=`` fields.
    """
    for name, value in event_dict.items():
        if isinstance(value, str):
            event_dict[name] = _redact(value)
    return event_dict


def configure_logging(
    *,
    json_logs: bool = False,
    log_level: str = "INFO",
    quiet_loggers: tuple[str, ...] = NOISY_LOGGERS,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        json_logs: One JSON object per line (production) instead of the Rich console
        log_level: Minimum level for application loggers
        quiet_loggers: Third-party loggers held at WARNING regardless of ``log_level``
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level {log_level!r}")

    # force=True: create_app() may run more than once per process (tests, reload)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    if json_logs:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.RichTracebackFormatter())
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ------------------------------------------------------------------ #
# Request ID Middleware
# ------------------------------------------------------------------ #


class RequestIdMiddleware:
    """Pure ASGI middleware that generates and propagates request IDs.

    An incoming ``X-Request-ID`` header is reused; otherwise a new id is
    generated. The id is bound into structlog's context variables and
    echoed on the response.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(REQUEST_ID_HEADER, b"").decode("latin-1")
        request_id = incoming[:64] or f"req_{uuid.uuid4().hex[:16]}"

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_request_id(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_request_id)


# ------------------------------------------------------------------ #
# Context Binding Helpers
# ------------------------------------------------------------------ #


def bind_user_context(user_id: str, role: str | None = None) -> None:
    """Bind the caller's identity to log context for this request."""
    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    if role:
        structlog.contextvars.bind_contextvars(user_role=role)
