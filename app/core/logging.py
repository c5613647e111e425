"""
Logging configuration for the MarketHub API

Every entry is stamped with the service identity and, while a request is in
flight, with its request_id, the authenticated user_id and the store_id the
path addresses. Audit events go to the dedicated "auth", "business" and
"security" loggers so they can be shipped separately.
"""
import logging.config
import os
import re
import sys
import time
import uuid
from typing import Any, Dict, Optional

import structlog
from starlette.datastructures import Headers, MutableHeaders

from app.core.config import settings

SERVICE_NAME = "markethub-api"
SERVICE_VERSION = "1.0.0"
LOG_FILE = os.path.join("logs", "markethub.log")

REQUEST_ID_HEADER = "X-Request-ID"
AUDIT_LOGGERS = ("auth", "business", "security")

_STORE_PATH = re.compile(r"^/stores/(?P<store_id>\d+)(?:/|$)")


def _logger(handlers, level) -> Dict[str, Any]:
    return {"handlers": list(handlers), "level": level, "propagate": False}


def setup_logging() -> None:
    """Configure stdlib handlers and the structlog processor chain"""
    production = settings.ENVIRONMENT == "production"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if production else "console",
            "stream": sys.stdout,
        },
    }
    if production:
        os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_FILE,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "formatter": "json",
        }
    names = list(handlers)

    loggers = {
        "": _logger(names, settings.LOG_LEVEL),
        "app": _logger(names, settings.LOG_LEVEL),
        "request": _logger(names, settings.LOG_LEVEL),
        "uvicorn": _logger(["console"], "INFO"),
        # LoggingMiddleware already records every request
        "uvicorn.access": _logger(["console"], "WARNING"),
        "sqlalchemy.engine": _logger(["console"], "WARNING"),
    }
    for name in AUDIT_LOGGERS:
        # audit trail is kept regardless of LOG_LEVEL
        loggers[name] = _logger(names, "INFO")

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
            "console": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": loggers,
    })

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            structlog.processors.JSONRenderer() if production
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = SERVICE_VERSION
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance"""
    return structlog.get_logger(name or "app")


def store_id_from_path(path: str) -> Optional[int]:
    """The store a /stores/{store_id}/... path addresses, if any."""
    match = _STORE_PATH.match(path)
    return int(match.group("store_id")) if match else None


def bind_user_context(request, user_id: int) -> None:
    """Attach the authenticated caller to the current request's log context."""
    request.state.user_id = user_id
    structlog.contextvars.bind_contextvars(user_id=user_id)


class LoggingMiddleware:
    """ASGI middleware that logs each request with its marketplace context"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        context = {"request_id": request_id, "method": scope["method"], "path": scope["path"]}
        store_id = store_id_from_path(scope["path"])
        if store_id is not None:
            context["store_id"] = store_id

        # handlers below record the caller here; see bind_user_context
        state = scope.setdefault("state", {})

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)
        request_logger = get_logger("request")

        start_time = time.perf_counter()
        response_status = 500

        async def send_wrapper(message):
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message["status"]
                message.setdefault("headers", [])
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            request_logger.error("Request failed", user_id=state.get("user_id"), error=str(e), exc_info=True)
            raise
        finally:
            request_logger.info(
                "Request completed",
                user_id=state.get("user_id"),
                status_code=response_status,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            structlog.contextvars.clear_contextvars()


def _audit(logger_name: str, level: str, message: str, **fields) -> None:
    log = get_logger(logger_name)
    getattr(log, level)(message, **{k: v for k, v in fields.items() if v is not None})


def log_auth_event(
    event_type: str,
    email: str,
    success: bool = True,
    user_id: int = None,
    reason: str = None,
):
    """Register and login outcomes; failures carry a reason code when one is known"""
    _audit(
        "auth",
        "info" if success else "warning",
        "Authentication event",
        event_type=event_type,
        email=email,
        success=success,
        user_id=user_id,
        reason=reason,
    )


def log_business_event(
    event_type: str,
    user_id: int,
    store_id: int = None,
    order_group_id: int = None,
    **details,
):
    """Marketplace state changes: stores, members, grants and checkouts"""
    _audit(
        "business",
        "info",
        "Business event",
        event_type=event_type,
        user_id=user_id,
        store_id=store_id,
        order_group_id=order_group_id,
        **details,
    )


SEVERITY_LEVELS = {
    "low": "info",
    "medium": "warning",
    "high": "error",
    "critical": "critical",
}


def log_security_event(
    event_type: str,
    severity: str = "medium",
    user_id: int = None,
    store_id: int = None,
    permission: str = None,
    **details,
):
    """Authorization denials, delegation attempts and throttling"""
    _audit(
        "security",
        SEVERITY_LEVELS.get(severity.lower(), "warning"),
        "Security event",
        event_type=event_type,
        severity=severity,
        user_id=user_id,
        store_id=store_id,
        permission=permission,
        **details,
    )
