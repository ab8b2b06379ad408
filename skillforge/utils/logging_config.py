"""
Logging setup for the SkillForge Hiring API.

Everything logs through the standard library under the ``skillforge``
namespace; handlers are installed once at startup with dictConfig.
"""
import functools
import inspect
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

LOG_FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-40s | %(funcName)-24s:%(lineno)-4d | %(message)s",
    "json": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
            '"function": "%(funcName)s", "line": %(lineno)d, "message": "%(message)s"}',
}

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# ENVIRONMENT -> setup_logging arguments; LOG_LEVEL applies where no level is fixed
ENVIRONMENT_PROFILES = {
    "production": {"enable_file": True, "format_style": "json"},
    "development": {"level": "DEBUG", "enable_file": True, "format_style": "detailed"},
    "testing": {"level": "WARNING", "enable_file": False, "format_style": "simple"},
}


def _rotating_file(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "file",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Install console and file handlers for the application and uvicorn.

    Args:
        level: root logging level
        enable_console: log to stdout
        enable_file: log to LOG_DIR/skillforge_<date>.log, plus an ERROR-only file
        format_style: 'simple', 'detailed' or 'json'
    """
    fmt = LOG_FORMATS.get(format_style, LOG_FORMATS["detailed"])
    handlers: Dict[str, Any] = {}

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "console",
            "stream": "ext://sys.stdout",
        }

    log_file = None
    if enable_file:
        log_dir = Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d")
        log_file = log_dir / f"skillforge_{stamp}.log"
        handlers["file"] = _rotating_file(log_file, level)
        handlers["error_file"] = _rotating_file(log_dir / f"skillforge_errors_{stamp}.log", "ERROR")

    app_handlers = list(handlers)
    server_handlers = [h for h in app_handlers if h != "error_file"]

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "file": {
                "format": LOG_FORMATS["json" if format_style == "json" else "detailed"],
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {"level": level, "handlers": app_handlers},
            "uvicorn": {"level": "INFO", "handlers": server_handlers, "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": server_handlers, "propagate": False},
            # Driver chatter stays out of application logs
            "pymongo": {"level": "WARNING"},
        },
    })

    logger = get_logger("logging")
    logger.info(f"Logging configured - level={level}, console={enable_console}, file={log_file}")


def configure_for_environment() -> None:
    """Configure logging from ENVIRONMENT and LOG_LEVEL."""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    profile = dict(ENVIRONMENT_PROFILES.get(environment, {}))
    profile.setdefault("level", os.getenv("LOG_LEVEL", "INFO").upper())
    setup_logging(**profile)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``skillforge`` namespace; module names already in it are kept as-is."""
    if name == "skillforge" or name.startswith("skillforge."):
        return logging.getLogger(name)
    return logging.getLogger(f"skillforge.{name}")


def log_function_call(func):
    """Trace entry, exit and failures of a function at debug level, sync or async."""
    logger = get_logger(func.__module__)

    def _elapsed(start: float) -> str:
        return f"{(time.time() - start) * 1000:.1f}ms"

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.time()
            logger.debug(f"-> {func.__name__} (args={len(args)}, kwargs={sorted(kwargs)})")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{func.__name__} raised {e.__class__.__name__} after {_elapsed(start)}: {e}")
                raise
            logger.debug(f"<- {func.__name__} in {_elapsed(start)}")
            return result
        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start = time.time()
        logger.debug(f"-> {func.__name__} (args={len(args)}, kwargs={sorted(kwargs)})")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{func.__name__} raised {e.__class__.__name__} after {_elapsed(start)}: {e}")
            raise
        logger.debug(f"<- {func.__name__} in {_elapsed(start)}")
        return result
    return sync_wrapper


class PerformanceMonitor:
    """Times a block and logs it, as a warning once it exceeds threshold_ms"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.elapsed_ms = None
        self._start = None

    def __enter__(self):
        self._start = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self._start) * 1000

        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms}ms)"
            )
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
