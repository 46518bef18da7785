"""Observability module for logging, metrics, and error tracking."""

import logging
import json
import sys
import time
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response

# Prometheus metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'Duration of HTTP requests in seconds',
    ['method', 'endpoint']
)

conversation_events_total = Counter(
    'conversation_events_total',
    'Inbound chat events processed by the conversation engine',
    ['step', 'outcome']
)

reports_submitted_total = Counter(
    'reports_submitted_total',
    'Reports persisted at the end of the questionnaire'
)

moderation_actions_total = Counter(
    'moderation_actions_total',
    'Moderation actions applied to reports',
    ['action']
)

upstream_failures_total = Counter(
    'upstream_failures_total',
    'Failed calls to external collaborators',
    ['service']
)

notifications_total = Counter(
    'notifications_total',
    'Outbound notifications by channel and outcome',
    ['channel', 'outcome']
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra'):
            log_data.update(record.extra)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=level,
        format='%(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for handler in logging.getLogger().handlers:
        handler.setFormatter(JSONFormatter())

    logging.getLogger("reporta").setLevel(level)
    # Reduce noise from third-party HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("reporta").info("Structured JSON logging configured")


def init_sentry(dsn: Optional[str], environment: str) -> None:
    """Initialize Sentry error tracking."""
    try:
        if dsn:
            import sentry_sdk
            from sentry_sdk.integrations.fastapi import FastApiIntegration
            from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

            sentry_sdk.init(
                dsn=dsn,
                environment=environment,
                integrations=[
                    FastApiIntegration(),
                    SqlalchemyIntegration(),
                ],
                traces_sample_rate=0.1,
            )
            logging.getLogger("reporta").info("Sentry initialized successfully")
        else:
            logging.getLogger("reporta").info("Sentry DSN not configured, skipping initialization")
    except ImportError:
        logging.getLogger("reporta").warning("sentry-sdk not installed, skipping Sentry initialization")


def setup_metrics_middleware(app):
    """Add Prometheus metrics middleware to FastAPI app."""
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        # Use the route template so ids do not explode label cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        method = request.method
        status = response.status_code

        http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

        return response


def metrics_response() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def get_health_check(sessions: int = 0, busy_reporters: int = 0) -> Dict[str, Any]:
    """Get health check information."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessions": sessions,
        "busy_reporters": busy_reporters,
    }
