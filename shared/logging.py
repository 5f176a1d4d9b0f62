"""
Structured logging for the edge gateway.

Every event is rendered as one JSON object carrying the service name, the
request id and, once a route has been classified, the subscriber id.
Values under credential-like keys are masked before rendering so the admin
secret never reaches a log sink.
"""

import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
subscriber_id_var: ContextVar[Optional[str]] = ContextVar("subscriber_id", default=None)

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"authorization", "admin_key", "password", "secret", "token"})

# Caller-supplied request ids are echoed into logs and headers.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog and stdlib logging for a service."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            service_name_adder(service_name),
            add_correlation_context,
            redact_credentials,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def service_name_adder(service_name: str) -> Processor:
    """Processor stamping ``service`` on every event."""
    def add_service(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request and subscriber ids from the current context."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    subscriber_id = subscriber_id_var.get()
    if subscriber_id:
        event_dict.setdefault("subscriber_id", subscriber_id)

    return event_dict


def redact_credentials(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Adopt a well-formed caller request id, or generate one."""
    if not request_id or not _REQUEST_ID_RE.match(request_id):
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_subscriber_context(subscriber_id: Optional[str] = None):
    if subscriber_id:
        subscriber_id_var.set(subscriber_id)


def clear_context():
    request_id_var.set(None)
    subscriber_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
