"""Logging bootstrap: structlog JSON (or plain text) on top of stdlib logging.

Modules log with ``logging.getLogger(__name__)`` and pass structured fields
through ``extra=``; ``ExtraAdder`` lifts them into the rendered JSON.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import structlog

APP_LOGGER_PREFIX = "bizsync"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
NOISY_LIBRARIES = ("httpx", "httpcore")

_TIMESTAMPER = structlog.processors.TimeStamper(fmt="iso", utc=True)


def _restrict_permissions(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        path.chmod(0o600)
    except OSError:
        logging.getLogger(__name__).warning("Unable to enforce 0600 permissions for %s", path)


def _is_app_record(record: logging.LogRecord) -> bool:
    return record.name.startswith(APP_LOGGER_PREFIX)


def _structured_formatter() -> logging.Formatter:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _TIMESTAMPER,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False, separators=(",", ":")),
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            _TIMESTAMPER,
        ],
    )


def _attach(
    root: logging.Logger,
    handler: logging.Handler,
    level: int,
    formatter: logging.Formatter,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    return handler


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Reset root logging from the ``[logging]`` config section.

    stderr only shows warnings and above from this package; the optional
    log file receives everything at the configured level.
    """
    level = getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO)
    if logging_config.get("structured", True):
        formatter = _structured_formatter()
    else:
        formatter = logging.Formatter(PLAIN_FORMAT)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    stderr = _attach(root, logging.StreamHandler(), max(level, logging.WARNING), formatter)
    stderr.addFilter(_is_app_record)

    if logging_config.get("log_to_file", False):
        target = Path(
            str(logging_config.get("log_file_path", "~/.local/state/bizsync/bizsync.log"))
        ).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        _attach(root, logging.FileHandler(target, encoding="utf-8"), level, formatter)
        _restrict_permissions(target)

    for name in NOISY_LIBRARIES:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.WARNING)
        library_logger.propagate = True
