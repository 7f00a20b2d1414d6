# Overview: Process-wide logging setup (plain or JSON lines on stderr).

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from flask import Flask

# Divergence between a stored total/balance and its ledger goes here, never to
# the request loggers, so it can be alerted on separately from user errors.
CONSISTENCY_LOGGER = "retail_ledger.consistency"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        details = getattr(record, "details", None)
        if details:
            payload["details"] = details
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    handler = logging.StreamHandler()
    if app.config.get("LOG_JSON"):
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )

    package_logger = logging.getLogger("retail_ledger")
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)

    app.logger.setLevel(level)


def consistency_logger() -> logging.Logger:
    return logging.getLogger(CONSISTENCY_LOGGER)
