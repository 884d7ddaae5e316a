"""
vestbond - Structured Logging Configuration

JSON log records for issuer operations:
- One record per state change, keyed by an ``event`` field
- Optional rotating file output
- Plain-text console output for local development

Usage:
    from vestbond.core.logging_config import setup_logging

    logger = setup_logging(name="vestbond", level="INFO")
    logger.info("Bond staked", extra={"event": "issuer.stake", "granted": 105})
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from .config import LoggingConfig

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps every record with service and environment.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        environment: Optional[str] = None,
        service_name: str = "vestbond",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "development"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "vestbond",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "development",
    json_format: bool = True,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    stream=None,
) -> logging.Logger:
    """
    Configure the ``name`` logger and return it.

    Args:
        name: Logger name; child loggers (``vestbond.core.issuer``) propagate to it
        log_file: Path to a JSON log file (optional)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment identifier stamped on JSON records
        json_format: Emit JSON records on the console instead of plain text
        enable_console: Whether to log to the console
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        stream: Console stream, defaults to stderr
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    json_formatter = CustomJsonFormatter(
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(json_formatter if json_format else logging.Formatter(TEXT_FORMAT))
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(json_formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(
    config: LoggingConfig,
    environment: str = "development",
    name: str = "vestbond",
    stream=None,
) -> logging.Logger:
    """Configure logging from a validated ``LoggingConfig`` section."""
    return setup_logging(
        name=name,
        log_file=config.log_file or None,
        level=config.level,
        environment=environment,
        json_format=bool(config.json_format),
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        stream=stream,
    )


def get_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = "INFO",
) -> logging.Logger:
    """Get a logger, configuring it only if it has no handlers yet."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logging(name=name, log_file=log_file, level=level)

    return logger
