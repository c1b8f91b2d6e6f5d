"""Observability module for logging, metrics, and error tracking."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from prometheus_client import Counter, start_http_server

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Prometheus metrics
inbound_events_total = Counter(
    "complaint_bot_inbound_events_total",
    "Inbound events accepted from the transport",
    ["kind"],
)

rate_limited_events_total = Counter(
    "complaint_bot_rate_limited_events_total",
    "Inbound events refused by the per-user rate limiter",
)

blocked_events_total = Counter(
    "complaint_bot_blocked_events_total",
    "Inbound events refused because the sender is blocked",
)

moderated_messages_total = Counter(
    "complaint_bot_moderated_messages_total",
    "Free-text messages refused by the moderation filter",
)

complaint_submissions_total = Counter(
    "complaint_bot_submissions_total",
    "Complaint submission attempts",
    ["outcome"],
)

delivery_failures_total = Counter(
    "complaint_bot_delivery_failures_total",
    "Individual outbound sends that failed during fan-out",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_logs: bool = False, log_file: Optional[str] = None) -> None:
    """Configure the root logger: console always, optional file mirror."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = JSONFormatter() if json_logs else logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), handlers=handlers, force=True)

    # httpx logs every polling request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured (level=%s, json=%s, file=%s)", level, json_logs, log_file or "-"
    )


def init_sentry(dsn: Optional[str], environment: str = "development") -> bool:
    """Initialize Sentry error tracking when a DSN is configured."""
    if not dsn:
        logging.info("Sentry DSN not configured, skipping initialization")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
    )
    logging.info("Sentry initialized successfully")
    return True


def start_metrics_server(port: Optional[int]) -> bool:
    if not port:
        return False
    start_http_server(port)
    logging.info("Prometheus metrics exposed on port %s", port)
    return True
