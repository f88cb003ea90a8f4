"""
Structured logging for the scheduling service.

Every line carries the request's correlation id and, when the request names
one, the doctor it is about, so a booking conflict can be followed from the
HTTP call down to the slot UPDATE that lost.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import date, datetime, time as dtime
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import Request

from app.core.config import settings

CORRELATION_HEADER = "X-Correlation-ID"

# Query parameters copied into the log context of every line of a request
CONTEXT_PARAMS = ("doctor_id", "patient_id", "appointment_id")

request_id: ContextVar[str] = ContextVar('request_id', default="")
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})


class TruncatingProcessor:
    """Clip free text fields (messages, errors, reasons) to max_length."""

    FIELDS = ('message', 'error', 'reason', 'detail')

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in self.FIELDS:
            if key in event_dict:
                event_dict[key] = str(event_dict[key])[:self.max_length]
        return event_dict


def _render_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dtime):
        return value.strftime("%H:%M")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def schedule_values(logger, method_name, event_dict):
    """Dates as ISO strings, clock times as HH:MM, enums by value."""
    return {key: _render_value(value) for key, value in event_dict.items()}


def add_request_context(logger, method_name, event_dict):
    correlation_id = request_id.get("")
    if correlation_id:
        event_dict['correlation_id'] = correlation_id
    for key, value in request_context.get({}).items():
        event_dict.setdefault(key, value)
    return event_dict


def setup_logging(debug: bool = False, max_log_length: int = 200):
    """Configure structlog on top of the standard library logger."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        add_request_context,
        TruncatingProcessor(max_length=max_log_length),
        schedule_values,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str):
    request_id.set(correlation_id)


def set_request_context(endpoint: Optional[str] = None, method: Optional[str] = None, **kwargs):
    context = {k: v for k, v in kwargs.items() if v is not None}
    if endpoint:
        context['endpoint'] = endpoint
    if method:
        context['method'] = method
    request_context.set(context)


def clear_context():
    request_id.set("")
    request_context.set({})


class LoggingMiddleware:
    """Correlation ids, per-request context and slow/failed request logging."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False,
                 slow_threshold: float = 2.0):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.slow_threshold = slow_threshold
        self.logger = get_logger("middleware")

    async def __call__(self, request: Request, call_next):
        # keep an upstream id so one booking can be traced across services
        correlation_id = request.headers.get(CORRELATION_HEADER, "")[:32] or str(uuid.uuid4())[:8]
        set_correlation_id(correlation_id)
        set_request_context(
            endpoint=request.url.path,
            method=request.method,
            **{name: request.query_params.get(name) for name in CONTEXT_PARAMS},
        )
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()
        if self.log_requests:
            self.logger.info("request_start", query_params=dict(request.query_params))

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            slow = duration > self.slow_threshold
            if self.log_responses or slow or response.status_code >= 400:
                self.logger.info("request_complete", status_code=response.status_code,
                                 duration=round(duration, 3), slow=slow)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        except Exception as e:
            self.logger.error("request_error", error=str(e), error_type=type(e).__name__,
                              duration=round(time.perf_counter() - start_time, 3))
            raise
        finally:
            clear_context()
