import json
import logging
import sys
from pathlib import Path
from typing import Any, Final, cast

from loguru import logger
from loguru._defaults import LOGURU_FORMAT

SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    {"api_key", "api_secret", "secret", "password", "token"}
)
REDACTED: Final[str] = "***REDACTED***"


class InterceptHandler(logging.Handler):
    """Redirects standard logging records (httpx, qasync, ...) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = cast(Any, frame.f_back)
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _redact_sensitive(record: dict[str, Any]) -> None:
    """Redacts sensitive values bound through `logger.bind(...)`."""
    for key, value in record["extra"].items():
        if key in SENSITIVE_KEYS and isinstance(value, str):
            record["extra"][key] = REDACTED


def _patch_record(record: dict[str, Any]) -> None:
    """Redacts the record, then renders it as one JSON line in `extra["json"]`.

    Patching runs once per record before any sink, so both sinks only ever
    see redacted values.
    """
    _redact_sensitive(record)
    log_object = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": {
            "name": record["name"],
            "file": f"{record['file'].name}:{record['line']}",
            "function": record["function"],
        },
        "extra": {k: v for k, v in record["extra"].items() if k != "json"},
    }
    record["extra"]["json"] = json.dumps(log_object, default=str)


def setup_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Path | None = None,
) -> None:
    """Configures the application-wide Loguru logger.

    Removes the default handler, adds a coloured console sink and, when
    `log_dir` is given, a daily-rotated file sink with one JSON object per
    line. Standard library logging is intercepted as well.

    Args:
        console_level: The minimum log level for console output.
        file_level: The minimum log level for file output.
        log_dir: Directory to store log files. If None, file logging is disabled.
    """
    logger.remove()
    logger.configure(patcher=_patch_record)
    logger.add(
        sys.stderr,
        level=console_level.upper(),
        format=LOGURU_FORMAT,
        colorize=True,
    )

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "holdingchart_{time:YYYY-MM-DD}.log",
            level=file_level.upper(),
            format="{extra[json]}",
            rotation="00:00",  # New file at midnight
            retention="7 days",
            compression="zip",
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logger.info("Logging configured successfully.")
