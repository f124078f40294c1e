"""
Errors and error tracking.

Every failure the synchronization absorbs instead of raising ends up in
an ErrorTracker: a bounded, categorized, timestamped log that can be
inspected after a run, independent of what was written to the logger.
"""

from __future__ import annotations

import logging
import traceback
from collections import deque
from enum import Enum
from typing import Any, Callable

import httpx
from pydantic import BaseModel, Field

from localazy_sync.core.utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class SyncError(Exception):
    """Base class for synchronization errors."""
    pass


class ConfigurationError(SyncError):
    """Settings, content transfer setup or credentials are missing."""
    pass


class ValidationError(SyncError):
    """A persisted value (mapping JSON, enabled fields) is malformed."""
    pass


class NetworkError(SyncError):
    """The remote system could not be reached."""
    pass


class ApiError(SyncError):
    """A remote system answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        method: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.method = method


def api_error_from_response(response: httpx.Response, source: str) -> ApiError:
    """Build an ApiError from a failed httpx response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    detail = ""
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            detail = str(errors[0].get("message", ""))
        detail = detail or str(payload.get("message", ""))

    try:
        request = response.request
    except RuntimeError:
        request = None
    return ApiError(
        detail or f"{source} request failed",
        status_code=response.status_code,
        url=str(request.url) if request else None,
        method=request.method if request else None,
    )


# =============================================================================
# Tracking
# =============================================================================


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    API = "api"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorRecord(BaseModel):
    """One tracked error."""

    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    category: ErrorCategory
    severity: ErrorSeverity
    type: str
    message: str
    details: dict[str, Any] | None = None
    stack: str | None = None


class ErrorTracker:
    """
    Bounded store of errors absorbed during synchronization.

    Keeps the most recent ``max_errors`` records; the oldest record is
    evicted first. Records are logged at a level matching their severity
    and, when a reporter is attached, HIGH and CRITICAL records are
    forwarded to it (see ``integrations.sentry``).

    Example:
        tracker = ErrorTracker()
        try:
            await api.list_projects()
        except Exception as e:
            tracker.track_localazy_error(e, "loadProject")

        tracker.get_error_counts()[ErrorCategory.API]
    """

    def __init__(
        self,
        max_errors: int = 100,
        reporter: Callable[[Exception, ErrorRecord], None] | None = None,
    ):
        self.max_errors = max_errors
        self._errors: deque[ErrorRecord] = deque(maxlen=max_errors)
        self._reporter = reporter

    # -------------------------------------------------------------------------
    # Tracking entry points
    # -------------------------------------------------------------------------

    def track_directus_error(self, error: Exception, type: str, details: dict[str, Any] | None = None) -> ErrorRecord:
        record = self._build_record(error, type, ErrorCategory.API, details)
        return self._log_and_store(record, "Directus", error)

    def track_localazy_error(self, error: Exception, type: str, details: dict[str, Any] | None = None) -> ErrorRecord:
        record = self._build_record(error, type, ErrorCategory.API, details)
        return self._log_and_store(record, "Localazy", error)

    def track_network_error(self, error: Exception, type: str, details: dict[str, Any] | None = None) -> ErrorRecord:
        record = self._build_record(error, type, ErrorCategory.NETWORK, details)
        return self._log_and_store(record, "Network", error)

    def track_validation_error(self, message: str, type: str, details: dict[str, Any] | None = None) -> ErrorRecord:
        record = ErrorRecord(
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            type=type,
            message=message,
            details=details,
        )
        return self._log_and_store(record, "Validation", ValidationError(message))

    def track_configuration_error(self, message: str, type: str, details: dict[str, Any] | None = None) -> ErrorRecord:
        record = ErrorRecord(
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            type=type,
            message=message,
            details=details,
        )
        return self._log_and_store(record, "Configuration", ConfigurationError(message))

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def get_errors(self) -> list[ErrorRecord]:
        return list(self._errors)

    def get_errors_by_category(self, category: ErrorCategory) -> list[ErrorRecord]:
        return [e for e in self._errors if e.category == category]

    def get_error_counts(self) -> dict[ErrorCategory, int]:
        counts = {category: 0 for category in ErrorCategory}
        for record in self._errors:
            counts[record.category] += 1
        return counts

    def clear(self) -> None:
        self._errors.clear()

    def __len__(self) -> int:
        return len(self._errors)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _build_record(
        self,
        error: Exception,
        type: str,
        category: ErrorCategory,
        details: dict[str, Any] | None,
    ) -> ErrorRecord:
        message = str(error) or error.__class__.__name__
        severity = ErrorSeverity.MEDIUM
        error_details: dict[str, Any] = dict(details or {})

        status, url, method = _http_context(error)
        if status is not None or url is not None:
            error_details["status"] = status
            error_details["url"] = url
            error_details["method"] = method

        if isinstance(error, NetworkError) or isinstance(error, httpx.TransportError):
            category = ErrorCategory.NETWORK
            severity = ErrorSeverity.HIGH
        elif status is not None:
            message = f"HTTP {status}: {message}"
            if status >= 500 or status in (401, 403):
                severity = ErrorSeverity.HIGH
            elif status == 429:
                message = "Rate limit exceeded"

        stack = None
        if error.__traceback__ is not None:
            stack = "".join(traceback.format_exception(error.__class__, error, error.__traceback__))

        return ErrorRecord(
            category=category,
            severity=severity,
            type=type,
            message=message,
            details=error_details or None,
            stack=stack,
        )

    def _log_and_store(self, record: ErrorRecord, source: str, error: Exception | None = None) -> ErrorRecord:
        log_message = f"[Localazy:{source}] {record.type}: {record.message}"
        if record.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            logger.error(log_message, extra={"details": record.details})
        elif record.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message, extra={"details": record.details})
        else:
            logger.info(log_message, extra={"details": record.details})

        self._errors.append(record)

        if (
            self._reporter is not None
            and error is not None
            and record.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH)
        ):
            self._reporter(error, record)
        return record


def _http_context(error: Exception) -> tuple[int | None, str | None, str | None]:
    """Status code, URL and method carried by an HTTP-level error."""
    if isinstance(error, ApiError):
        return error.status_code, error.url, error.method
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code, str(error.request.url), error.request.method
    return None, None, None
