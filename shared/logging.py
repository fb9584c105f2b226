"""
Shared logging configuration for the catalog access layer.

Loggers are named ``<service>.<component>`` (for example
``catalog.manifest_cache``); both parts are attached to every event.
Events emitted while serving a request carry its request id, and events
emitted during a manifest refresh carry the refresh id so the cache, the
remote client and the generator can be correlated for a single load.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
refresh_id_var: ContextVar[Optional[str]] = ContextVar('refresh_id', default=None)


def configure_logging(service_name: str, log_level: str = "info", json_output: bool = True) -> None:
    """Configure structured logging for a service or script.

    ``json_output=False`` renders human-readable lines, used by the
    command-line tools.
    """
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_component_context,
            add_correlation_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout if json_output else sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    logging.getLogger(service_name).setLevel(getattr(logging, log_level.upper(), logging.INFO))


def add_component_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Split the logger name into service and component fields."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        service, component = logger_name.split(".", 1)
        event_dict.setdefault("service", service)
        event_dict.setdefault("component", component)

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request and refresh correlation ids to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    refresh_id = refresh_id_var.get()
    if refresh_id:
        event_dict["refresh_id"] = refresh_id

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def start_refresh() -> str:
    """Tag the current task's log events with a new manifest refresh id."""
    refresh_id = uuid.uuid4().hex[:12]
    refresh_id_var.set(refresh_id)
    return refresh_id


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    refresh_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
