"""
debug_trace.py

Logging setup and call tracing.

``setup_logging`` configures the ``stickerkit`` logger hierarchy once at
startup.  ``trace`` and ``trace_call`` emit DEBUG records on the
``stickerkit.trace`` logger and are no-ops unless tracing is enabled.
"""

from __future__ import annotations

import logging
from functools import wraps
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Set to True (or call enable_tracing) to emit trace records
DEBUG_TRACE = False

_trace_log = logging.getLogger("stickerkit.trace")


def setup_logging(
    level: Union[int, str] = logging.WARNING,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Configure the package logger.

    Replaces any handlers installed by an earlier call so repeated setup
    does not duplicate output.

    Args:
        level: Logging level name or number.
        log_file: Optional path of a file that receives the same records.

    Returns:
        The configured ``stickerkit`` logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("stickerkit")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_settings(manager=None) -> logging.Logger:
    """Configure logging and tracing from the ``[logging]`` settings section."""
    if manager is None:
        from stickerkit.settings import get_settings
        manager = get_settings()
    cfg = manager.settings.logging
    enable_tracing(cfg.trace)
    return setup_logging(cfg.level, cfg.log_file or None)


def enable_tracing(enabled: bool = True) -> None:
    global DEBUG_TRACE
    DEBUG_TRACE = enabled


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with *category*."""
    if not DEBUG_TRACE:
        return
    _trace_log.debug("[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    _trace_log.debug("[ERROR] %s", msg, exc_info=True)


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls.

    The tracing flag is checked on every call, so enabling tracing after
    import still instruments decorated functions.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not DEBUG_TRACE:
                return func(*args, **kwargs)
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<<< {func_name}", category)
            return result
        return wrapper
    return decorator
