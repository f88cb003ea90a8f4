"""
Scheduling error taxonomy plus error aggregation for deduplicated logging.
"""
import hashlib
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ---------- Scheduling errors ----------

class SchedulingError(Exception):
    """Base class for every failure a scheduling operation reports to its caller."""

    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.extra}


class ConfigurationError(SchedulingError):
    """The doctor is not set up for the requested operation (e.g. no templates)."""
    code = "configuration_error"
    status_code = 422


class ConflictError(SchedulingError):
    """The slot is no longer in the state the caller expected. Re-query and retry."""
    code = "conflict"
    status_code = 409


class NotFoundError(SchedulingError):
    code = "not_found"
    status_code = 404


class StateError(SchedulingError):
    """The entity is in the wrong state for this transition."""
    code = "invalid_state"
    status_code = 409


class ValidationError(SchedulingError):
    """Input or cross-entity constraints are violated."""
    code = "validation_error"
    status_code = 422


# ---------- Aggregation ----------

class ErrorSeverity(Enum):
    """Error severity levels for smart alerting."""
    LOW = "low"           # expected outcomes: conflicts, not found, validation
    MEDIUM = "medium"     # recoverable infrastructure errors
    HIGH = "high"         # data corruption, storage failures
    CRITICAL = "critical" # service down


class ErrorPattern:
    """Track error patterns to reduce duplicate logging."""

    def __init__(self, error_type: str, message: str, context: Dict[str, Any]):
        self.error_type = error_type
        self.message = message[:100]
        self.context = {k: v for k, v in context.items() if k in ['endpoint', 'operation', 'method']}
        self.fingerprint = self._generate_fingerprint()
        self.first_seen = time.time()
        self.last_seen = time.time()
        self.count = 1

    def _generate_fingerprint(self) -> str:
        content = f"{self.error_type}:{self.message}:{self.context.get('endpoint', '')}:{self.context.get('operation', '')}"
        return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()[:8]

    def update(self):
        self.last_seen = time.time()
        self.count += 1


class ErrorAggregator:
    """Aggregate and deduplicate errors so repeated failures don't flood the logs."""

    def __init__(self, log_threshold: int = 10, time_window: int = 300):
        self.log_threshold = log_threshold  # Log every Nth occurrence
        self.time_window = time_window      # 5 minutes
        self.patterns: Dict[str, ErrorPattern] = {}
        self.severity_override = {
            "ConflictError": ErrorSeverity.LOW,
            "NotFoundError": ErrorSeverity.LOW,
            "ValidationError": ErrorSeverity.LOW,
            "StateError": ErrorSeverity.LOW,
            "ConfigurationError": ErrorSeverity.LOW,
            "HTTPException": ErrorSeverity.LOW,
            "TimeoutError": ErrorSeverity.MEDIUM,
            "ConnectionError": ErrorSeverity.MEDIUM,
            "IntegrityError": ErrorSeverity.HIGH,
            "DatabaseError": ErrorSeverity.HIGH,
        }

    def _determine_severity(self, error: Exception) -> ErrorSeverity:
        error_type = type(error).__name__

        if error_type in self.severity_override:
            return self.severity_override[error_type]

        if isinstance(error, HTTPException):
            if error.status_code < 500:
                return ErrorSeverity.LOW
            elif error.status_code < 503:
                return ErrorSeverity.MEDIUM
            else:
                return ErrorSeverity.HIGH

        if "timeout" in str(error).lower():
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.MEDIUM

    def should_log(self, pattern: ErrorPattern, severity: ErrorSeverity) -> bool:
        """Determine if error should be logged based on frequency and severity."""
        if severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            return True

        if pattern.count == 1:
            return True

        if severity == ErrorSeverity.MEDIUM and pattern.count % self.log_threshold == 0:
            return True

        if severity == ErrorSeverity.LOW and pattern.count % (self.log_threshold * 5) == 0:
            return True

        return False

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None,
                  severity: Optional[ErrorSeverity] = None) -> str:
        """Log error with deduplication and frequency control."""
        context = context or {}

        if severity is None:
            severity = self._determine_severity(error)

        error_type = type(error).__name__
        message = str(error)

        pattern = ErrorPattern(error_type, message, context)
        fingerprint = pattern.fingerprint

        if fingerprint in self.patterns:
            self.patterns[fingerprint].update()
            pattern = self.patterns[fingerprint]
        else:
            self.patterns[fingerprint] = pattern

        if self.should_log(pattern, severity):
            log = logger.warning if severity == ErrorSeverity.LOW else logger.error
            log(
                "aggregated_error",
                error_hash=fingerprint,
                error_type=error_type,
                error=message,
                count=pattern.count,
                severity=severity.value,
                **context
            )

        return fingerprint

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of recent errors for monitoring."""
        now = time.time()
        recent_errors = {
            fp: pattern for fp, pattern in self.patterns.items()
            if now - pattern.last_seen < self.time_window
        }

        by_type: Dict[str, int] = defaultdict(int)
        for pattern in recent_errors.values():
            by_type[pattern.error_type] += pattern.count

        top_errors = sorted(recent_errors.values(), key=lambda p: p.count, reverse=True)[:5]
        return {
            "total_unique_errors": len(recent_errors),
            "total_error_count": sum(p.count for p in recent_errors.values()),
            "by_type": dict(by_type),
            "top_errors": [
                {
                    "fingerprint": p.fingerprint,
                    "type": p.error_type,
                    "message": p.message,
                    "count": p.count
                }
                for p in top_errors
            ],
        }

    def cleanup_old_patterns(self):
        """Remove old error patterns to prevent memory leaks."""
        cutoff = time.time() - (self.time_window * 10)

        old_patterns = [
            fp for fp, pattern in self.patterns.items()
            if pattern.last_seen < cutoff
        ]

        for fp in old_patterns:
            del self.patterns[fp]

        if old_patterns:
            logger.info("error_cleanup", removed_patterns=len(old_patterns))


# Global error aggregator instance
error_aggregator = ErrorAggregator()


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> str:
    """Convenience function to log errors through the global aggregator."""
    return error_aggregator.log_error(error, context, severity)


def get_error_summary() -> Dict[str, Any]:
    """Get error summary from global aggregator."""
    return error_aggregator.get_error_summary()


# ---------- FastAPI wiring ----------

async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    log_error(exc, {"endpoint": request.url.path, "method": request.method})
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
