"""Structured log helpers shared by the API, storage and editing layers.

Each helper writes through a named stdlib logger with the context passed in
``extra`` so handlers configured in ``logging_config`` can render it.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import Request


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def log_quotation_action(action: str, quote_number: str, **context: Any) -> None:
    """Record an edit or lifecycle action on a quotation.

    Args:
        action: What happened (e.g. 'save_version', 'undo')
        quote_number: Quotation the action applies to
        **context: Extra fields such as row ids or version numbers
    """
    logging.getLogger("quotation_actions").info(
        f"{action} on {quote_number}",
        extra={
            "action": action,
            "quote_number": quote_number,
            "timestamp": _now(),
            **context,
        },
    )


def log_request(
    request: Request, status_code: int, duration_ms: float | None = None
) -> None:
    """Log one handled HTTP request, escalating the level on 4xx and 5xx."""
    message = f"{request.method} {request.url.path} -> {status_code}"
    extra: dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "client_ip": request.client.host if request.client else None,
    }
    if duration_ms is not None:
        message += f" in {duration_ms:.1f}ms"
        extra["duration_ms"] = round(duration_ms, 2)

    logging.getLogger("api").log(_status_level(status_code), message, extra=extra)


def log_storage_event(
    operation: str, quote_number: str, success: bool = True, **context: Any
) -> None:
    """Log a load or save against the quotation store.

    Failures are logged at ERROR; callers decide how to report them upward.
    """
    outcome = "ok" if success else "failed"
    logging.getLogger("storage").log(
        logging.INFO if success else logging.ERROR,
        f"Storage {operation} for {quote_number} {outcome}",
        extra={
            "operation": operation,
            "quote_number": quote_number,
            "success": success,
            **context,
        },
    )


def log_startup(hostname: str, debug_mode: bool, database_url: str) -> None:
    # Credentials live before the '@' in a database URL
    logging.getLogger("system").info(
        "Quotation service starting",
        extra={
            "hostname": hostname,
            "debug_mode": debug_mode,
            "database": database_url.split("@")[-1],
            "timestamp": _now(),
        },
    )


def log_validation_error(field: str, value: Any, error_message: str) -> None:
    """Log a rejected edit with a truncated copy of the offending value."""
    logging.getLogger("validation").warning(
        f"Rejected {field}: {error_message}",
        extra={"field": field, "value": str(value)[:100], "error": error_message},
    )
