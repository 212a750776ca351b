from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from src.consular.config import settings


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter used in production so logs stay machine-parseable."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


class DevelopmentFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")


def setup_logging() -> logging.Logger:
    """Configure the root logger once at application startup."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Third-party clients are chatty at INFO.
    for noisy in ("httpx", "httpcore", "pymongo", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger("consular")
    logger.info("Logging configured (environment=%s, level=%s)", settings.environment, settings.log_level)
    return logger
