"""
Observability infrastructure for streamsom
Provides structured logging, metrics, tracing and health reporting
"""

import logging
import os
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict

import psutil
import structlog
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Prometheus Metrics
REQUESTS_TOTAL = Counter(
    "streamsom_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "streamsom_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

TRAINING_DURATION = Histogram(
    "streamsom_training_duration_seconds",
    "Offline training duration in seconds",
    ["learner", "width", "height"],
)

TRAINING_ITERATIONS = Counter(
    "streamsom_training_iterations_total",
    "Total offline training iterations completed",
    ["learner"],
)

STREAM_SAMPLES = Counter(
    "streamsom_stream_samples_total",
    "Total inputs consumed by streaming models",
    ["model"],
)

UBISOM_TRANSITIONS = Counter(
    "streamsom_ubisom_transitions_total",
    "UbiSOM state machine transitions",
    ["source", "target"],
)

CATEGORIES_CREATED = Counter(
    "streamsom_art_categories_created_total",
    "StreamART2A micro-categories created",
)

CATEGORIES_EVICTED = Counter(
    "streamsom_art_categories_evicted_total",
    "StreamART2A micro-categories evicted",
    ["reason"],
)

CATEGORIES_MERGED = Counter(
    "streamsom_art_categories_merged_total",
    "StreamART2A micro-category merges",
)

CODEBOOK_SIZE = Gauge(
    "streamsom_art_codebook_size",
    "Micro-categories held by the most recently updated StreamART2A",
)

MODELS_CREATED = Counter(
    "streamsom_models_created_total", "Total number of models created", ["kind"]
)

MODELS_ACTIVE = Gauge("streamsom_models_active", "Number of currently stored models")

BMU_REQUESTS = Counter("streamsom_bmu_requests_total", "Total BMU lookup requests")

SYSTEM_MEMORY_USAGE = Gauge(
    "streamsom_system_memory_usage_bytes", "System memory usage in bytes"
)

SYSTEM_CPU_USAGE = Gauge(
    "streamsom_system_cpu_usage_percent", "System CPU usage percentage"
)

__all__ = [
    "CONTENT_TYPE_LATEST",
    "setup_logging",
    "get_correlation_id",
    "trace_operation",
    "get_metrics",
    "get_health_status",
    "log_request_metrics",
    "log_training_metrics",
    "log_stream_sample",
    "log_state_transition",
    "log_category_created",
    "log_category_evicted",
    "log_category_merged",
    "update_codebook_size",
    "log_bmu_request",
    "log_model_created",
    "update_active_models_count",
    "RequestTracingMiddleware",
]


class CorrelationIDProcessor:
    """Add correlation ID to log entries"""

    def __call__(self, logger, method_name, event_dict):
        if "correlation_id" not in event_dict:
            event_dict["correlation_id"] = getattr(
                event_dict.get("request"), "correlation_id", "unknown"
            )
        return event_dict


def setup_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """Configure structured logging with structlog"""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        CorrelationIDProcessor(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )


def get_correlation_id() -> str:
    """Generate a new correlation ID"""
    return str(uuid.uuid4())


@contextmanager
def trace_operation(operation_name: str, **extra_context):
    """Context manager for tracing operations with logging and duration"""
    logger = structlog.get_logger()
    correlation_id = get_correlation_id()
    start_time = time.time()

    logger.info(
        "Operation started",
        operation=operation_name,
        correlation_id=correlation_id,
        **extra_context,
    )

    try:
        yield correlation_id
        duration = time.time() - start_time
        logger.info(
            "Operation completed",
            operation=operation_name,
            correlation_id=correlation_id,
            duration_seconds=duration,
            **extra_context,
        )
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            "Operation failed",
            operation=operation_name,
            correlation_id=correlation_id,
            duration_seconds=duration,
            error=str(e),
            error_type=type(e).__name__,
            **extra_context,
        )
        raise


def update_system_metrics():
    """Update system-level metrics"""
    try:
        memory_info = psutil.virtual_memory()
        SYSTEM_MEMORY_USAGE.set(memory_info.used)

        cpu_percent = psutil.cpu_percent(interval=None)
        SYSTEM_CPU_USAGE.set(cpu_percent)

    except Exception as e:
        logger = structlog.get_logger()
        logger.error("Failed to update system metrics", error=str(e))


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format"""
    update_system_metrics()
    return generate_latest()


def log_request_metrics(method: str, endpoint: str, status_code: int, duration: float):
    REQUESTS_TOTAL.labels(
        method=method, endpoint=endpoint, status_code=status_code
    ).inc()
    REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)


def log_training_metrics(
    learner: str, width: int, height: int, duration: float, iterations: int
):
    """Record one completed offline training run"""
    TRAINING_DURATION.labels(
        learner=learner, width=str(width), height=str(height)
    ).observe(duration)
    TRAINING_ITERATIONS.labels(learner=learner).inc(iterations)


def log_stream_sample(model: str):
    STREAM_SAMPLES.labels(model=model).inc()


def log_state_transition(source: str, target: str):
    UBISOM_TRANSITIONS.labels(source=source, target=target).inc()


def log_category_created():
    CATEGORIES_CREATED.inc()


def log_category_evicted(reason: str):
    CATEGORIES_EVICTED.labels(reason=reason).inc()


def log_category_merged():
    CATEGORIES_MERGED.inc()


def update_codebook_size(size: int):
    CODEBOOK_SIZE.set(size)


def log_bmu_request():
    BMU_REQUESTS.inc()


def log_model_created(kind: str):
    MODELS_CREATED.labels(kind=kind).inc()


def update_active_models_count(count: int):
    MODELS_ACTIVE.set(count)


class RequestTracingMiddleware:
    """Middleware to add correlation IDs to requests"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            correlation_id = get_correlation_id()
            scope["correlation_id"] = correlation_id

            async def send_with_correlation_id(message):
                if message["type"] == "http.response.start":
                    headers = dict(message.get("headers", []))
                    headers[b"x-correlation-id"] = correlation_id.encode()
                    message["headers"] = list(headers.items())
                await send(message)

            await self.app(scope, receive, send_with_correlation_id)
        else:
            await self.app(scope, receive, send)


def get_health_status() -> Dict[str, Any]:
    """Get detailed health status"""
    try:
        memory_info = psutil.virtual_memory()
        disk_info = psutil.disk_usage("/")

        return {
            "status": "healthy",
            "timestamp": time.time(),
            "system": {
                "memory": {
                    "total": memory_info.total,
                    "available": memory_info.available,
                    "used": memory_info.used,
                    "percentage": memory_info.percent,
                },
                "cpu": {"usage_percent": psutil.cpu_percent(interval=None)},
                "disk": {
                    "total": disk_info.total,
                    "used": disk_info.used,
                    "free": disk_info.free,
                    "percentage": (disk_info.used / disk_info.total) * 100,
                },
            },
            "application": {
                "version": os.getenv("APP_VERSION", "unknown"),
                "environment": os.getenv("ENVIRONMENT", "development"),
            },
        }
    except Exception as e:
        return {"status": "unhealthy", "timestamp": time.time(), "error": str(e)}
