# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Logging setup for the CredGuard client and CLI."""

import json
import logging
import sys
from typing import Any, Dict

from credguard.config import LOG_FORMAT, LOG_LEVEL

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Produces one JSON object per log line with fields:

    * ``timestamp``: ISO 8601 UTC timestamp.
    * ``level``: Log level name (INFO, WARNING, ERROR, etc.).
    * ``logger``: Logger name.
    * ``message``: The formatted log message.
    * ``module``: Source module name.
    * ``funcName``: Source function name.

    If the log record carries an exception, it is serialized as an
    ``exception`` field containing the formatted traceback string.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    """Configure root logging for the client.

    All existing handlers are removed first so repeated calls (one per
    CLI invocation under a test runner, for example) do not duplicate
    output. ``fmt`` is ``"json"`` for structured lines, anything else
    for the plain text format.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if fmt.lower() == "json":
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # httpx logs every request at INFO; keep it quiet unless debugging
    if root.level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
