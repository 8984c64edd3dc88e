"""Logging setup for credwallet.

Format and level come from the validated ``Settings`` (``CW_LOG_FORMAT``,
``CW_LOG_LEVEL``). In JSON mode every record is one object; ``extra`` fields
such as request_id, method, store, credential_id, holder and error_type are
carried through as top-level keys.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from credwallet.config import Settings, settings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class StructuredJsonFormatter(JsonFormatter):
    """JsonFormatter that reports exceptions as a ``traceback`` list."""

    def __init__(self) -> None:
        super().__init__(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    def add_fields(
        self, log_data: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]
    ) -> None:
        super().add_fields(log_data, record, message_dict)
        log_data.pop("exc_info", None)
        if record.exc_info and record.exc_info[1] is not None:
            log_data["traceback"] = traceback.format_exception(*record.exc_info)


def setup_logging(config: Settings | None = None) -> None:
    """Install a single root handler configured from *config* (global settings by default)."""
    config = config or settings
    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if config.log_format == "json":
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_startup_info(config: Settings | None = None) -> None:
    """Log the wallet version and the storage settings in effect."""
    import credwallet

    config = config or settings
    logging.getLogger("credwallet").info(
        "credwallet started",
        extra={
            "version": credwallet.__version__,
            "state_encryption": "enabled" if config.state_key else "disabled",
            "remote_url": config.remote_url,
            "remote_alias": config.remote_alias,
        },
    )
