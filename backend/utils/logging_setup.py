"""
Loguru based logging with per-service and per-user filtering.

Filtering by:
- user_id: user ID
- service: meta_api, database, chatwork, scheduler, alerts
- function: daily, update, alert (notification kind)

Usage:
    from utils.logging_setup import get_logger

    # Basic logger
    logger = get_logger()
    logger.info("Plain message")

    # Logger with context
    logger = get_logger(service="meta_api", user_id="u-123")
    logger.info("Insights request")

    # Notification kind in context
    logger = get_logger(service="scheduler", function="alert", user_id="u-456")
    logger.info("Alert digest sent")
"""

import os
import sys
from contextvars import ContextVar
from pathlib import Path

from loguru import logger

from utils.time_utils import get_jst_time

# Context variables shared between functions of one dispatch pass
_current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)
_current_service: ContextVar[str | None] = ContextVar("current_service", default=None)
_current_function: ContextVar[str | None] = ContextVar("current_function", default=None)

LOG_DIR = Path(os.environ.get("ADS_ALERTS_LOG_DIR", Path(__file__).parent.parent / "logs"))

SERVICES = ["meta_api", "database", "chatwork", "scheduler", "alerts"]
FUNCTIONS = ["daily", "update", "alert"]

_initialized = False


def _format_record(record: dict) -> str:
    """Format a log record with its context."""
    extra = record.get("extra", {})
    user_id = extra.get("user_id") or _current_user_id.get()
    service = extra.get("service") or _current_service.get() or "app"
    function = extra.get("function") or _current_function.get()

    timestamp = get_jst_time().strftime("%Y-%m-%d %H:%M:%S")

    context_parts = [service]
    if function:
        context_parts.append(function)
    if user_id:
        context_parts.append(f"user:{user_id}")
    context = " | ".join(context_parts)

    level = record["level"].name
    # Escape braces: loguru treats the returned string as a format template
    message = str(record["message"]).replace("{", "{{").replace("}", "}}")

    line = f"{timestamp} | {level:<8} | {context} | {message}\n"
    if record.get("exception"):
        line += "{exception}\n"
    return line


def _filter_by_service(service_name: str):
    """Build a filter for one service."""
    def filter_func(record):
        extra = record.get("extra", {})
        record_service = extra.get("service") or _current_service.get()
        return record_service == service_name
    return filter_func


def _filter_by_function(function_name: str):
    """Build a filter for one notification kind."""
    def filter_func(record):
        extra = record.get("extra", {})
        record_func = extra.get("function") or _current_function.get()
        return record_func == function_name
    return filter_func


def setup_logging():
    """
    Initialize logging.
    Called once at application start; later calls are no-ops.
    """
    global _initialized
    if _initialized:
        return logger

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logger.remove()

    # Console (everything)
    logger.add(
        sys.stdout,
        format=_format_record,
        level="DEBUG",
        colorize=True,
    )

    # Main log file (everything)
    logger.add(
        LOG_DIR / "ads_alerts_all.log",
        format=_format_record,
        level="DEBUG",
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        encoding="utf-8",
        enqueue=True,
    )

    # Errors only
    logger.add(
        LOG_DIR / "ads_alerts_errors.log",
        format=_format_record,
        level="ERROR",
        rotation="10 MB",
        retention="30 days",
        compression="gz",
        encoding="utf-8",
    )

    for service in SERVICES:
        logger.add(
            LOG_DIR / f"service_{service}.log",
            format=_format_record,
            level="DEBUG",
            filter=_filter_by_service(service),
            rotation="20 MB",
            retention="7 days",
            compression="gz",
            encoding="utf-8",
        )

    for func in FUNCTIONS:
        logger.add(
            LOG_DIR / f"notification_{func}.log",
            format=_format_record,
            level="DEBUG",
            filter=_filter_by_function(func),
            rotation="20 MB",
            retention="7 days",
            compression="gz",
            encoding="utf-8",
        )

    _initialized = True
    logger.bind(service="app").info("Logging initialized")
    return logger


def get_logger(
    service: str | None = None,
    function: str | None = None,
    user_id: str | None = None,
):
    """
    Get a logger with bound context.

    Args:
        service: Service name (meta_api, database, chatwork, scheduler, alerts)
        function: Notification kind (daily, update, alert)
        user_id: User ID

    Returns:
        Logger with bound context

    Example:
        logger = get_logger(service="chatwork", user_id="u-123")
        logger.info("Message sent")
        # Output: 2026-01-15 12:00:00 | INFO     | chatwork | user:u-123 | Message sent
    """
    if not _initialized:
        setup_logging()

    context = {}
    if service:
        context["service"] = service
    if function:
        context["function"] = function
    if user_id:
        context["user_id"] = user_id

    return logger.bind(**context)


def set_context(
    user_id: str | None = None,
    service: str | None = None,
    function: str | None = None,
):
    """
    Set context for the current thread/coroutine.

    Example:
        set_context(user_id="u-123", service="scheduler")
        logger.info("Message")  # user_id and service are added automatically
    """
    if user_id is not None:
        _current_user_id.set(user_id)
    if service is not None:
        _current_service.set(service)
    if function is not None:
        _current_function.set(function)


def clear_context():
    """Clear the context of the current thread/coroutine."""
    _current_user_id.set(None)
    _current_service.set(None)
    _current_function.set(None)
