"""
Logging configuration with request_id correlation.
Structured logging for Cloud Logging compatibility.

PII Protection:
- Never log recipient emails, signature images or storage keys
- Use fingerprints (sha256[:8]) for recipient correlation
"""
import hashlib
import logging
import sys
import uuid
import json
from contextvars import ContextVar
from typing import Optional
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def fingerprint(value: Optional[str], prefix: str = "") -> str:
    """
    Create a safe fingerprint for logging PII values.

    Example:
        fingerprint("user@example.com", "rcp_") -> "rcp_f5e6d7c8"
    """
    if not value:
        return f"{prefix}none" if prefix else "none"
    fp = hashlib.sha256(value.strip().lower().encode()).hexdigest()[:8]
    return f"{prefix}{fp}" if prefix else fp


# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
document_id_var: ContextVar[Optional[str]] = ContextVar("document_id", default=None)
recipient_fp_var: ContextVar[Optional[str]] = ContextVar("recipient_fp", default=None)
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_context(
    document_id: Optional[str] = None,
    recipient_email: Optional[str] = None,
    operation: Optional[str] = None,
) -> None:
    """
    Set logging context variables.

    Args:
        document_id: Document UUID (safe to log)
        recipient_email: Recipient email, stored only as a fingerprint
        operation: Merge entry point ("print", "send", "migrate", "merge")
    """
    if document_id:
        document_id_var.set(document_id)
    if recipient_email:
        recipient_fp_var.set(fingerprint(recipient_email, "rcp_"))
    if operation:
        operation_var.set(operation)


def clear_context() -> None:
    """Clear all context variables."""
    request_id_var.set(None)
    document_id_var.set(None)
    recipient_fp_var.set(None)
    operation_var.set(None)


class CloudLoggingFormatter(logging.Formatter):
    """
    Formatter for Google Cloud Logging structured logs.
    Outputs JSON format compatible with Cloud Logging.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "logger": record.name,
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["logging.googleapis.com/trace"] = request_id
            log_entry["request_id"] = request_id

        for key, var in (
            ("document_id", document_id_var),
            ("recipient_fp", recipient_fp_var),
            ("operation", operation_var),
        ):
            value = var.get()
            if value:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_entry["data"] = record.extra_data

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get()
        document_id = document_id_var.get()
        operation = operation_var.get()

        prefix = f"[{record.levelname}] [{request_id[:8] if request_id else '-'}]"
        if document_id:
            prefix += f" [doc:{document_id[:8]}]"
        if operation:
            prefix += f" [{operation}]"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """
    Configure logging based on environment.
    - production: JSON structured logs for Cloud Logging
    - development: Human-readable format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if environment == "production":
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique request_id to each request.
    Also extracts document_id from path if present.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)

        path_parts = request.url.path.split("/")
        for i, part in enumerate(path_parts):
            if part == "documents" and i + 1 < len(path_parts) and path_parts[i + 1]:
                document_id_var.set(path_parts[i + 1])
                break

        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()
