"""
Exception logging helpers that never raise themselves.

Transport failures surfaced by httpx may arrive wrapped in exception groups
(anyio task groups), so sub-exceptions are unpacked when present.
"""

import logging


def _safe_str(obj) -> str:
    """Convert an object to string, falling back when __str__ or __repr__ fail."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Short, client-presentable description of an exception.

    Falls back to the exception type name when the message is empty, which is
    common for httpx timeout errors.
    """
    if exception is None:
        return "None"

    message = _safe_str(exception) or type(exception).__name__
    sub_exceptions = _sub_exceptions(exception)
    if not sub_exceptions:
        return message

    details = "; ".join(
        f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions
    )
    return f"{message} (Sub-exceptions: {details})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, including each sub-exception of an exception group.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Mirror]", "[Cache]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        sub_exceptions = _sub_exceptions(exception)
        if not sub_exceptions:
            logger.log(
                level,
                f"{prefix} Exception: {format_exception_message(exception)}",
                exc_info=exception if exception is not None else False,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(level, f"{prefix} Exception (logging failed)")
        except Exception:
            # Logging itself is broken; nothing left to report to
            pass
