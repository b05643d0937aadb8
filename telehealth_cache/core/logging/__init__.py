"""Structured logging (structlog) with request ID correlation and redaction."""

from telehealth_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    redact_value,
    set_request_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_stage",
    "set_request_id",
    "get_request_id",
    "clear_request_id",
    "redact_value",
]
