"""
Centralized error handling for the document assembly pipeline.

This module provides the pipeline error taxonomy, standardized error codes
and the helpers that turn pipeline failures into consistent HTTP responses.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, Union
from fastapi import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"

    # Configuration errors
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"

    # Service-specific errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_ERROR = "SERVICE_ERROR"

    # Conversion-specific errors
    CONVERSION_NOT_SUPPORTED = "CONVERSION_NOT_SUPPORTED"
    INVALID_FILE = "INVALID_FILE"
    COMPRESSION_FAILED = "COMPRESSION_FAILED"

    # Queue errors
    PIPELINE_BUSY = "PIPELINE_BUSY"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class ErrorSeverity(str, Enum):
    """Error severity levels for logging and response handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Error code to HTTP status code mapping
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    # 4xx Client Errors
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_FILE: 400,
    ErrorCode.CONVERSION_NOT_SUPPORTED: 400,
    ErrorCode.MISSING_CREDENTIAL: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PIPELINE_BUSY: 409,

    # 5xx Server Errors
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INVALID_TRANSITION: 500,
    ErrorCode.SERVICE_ERROR: 502,
    ErrorCode.COMPRESSION_FAILED: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}

# Error code to severity mapping
ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.INVALID_TRANSITION: ErrorSeverity.CRITICAL,
    ErrorCode.SERVICE_ERROR: ErrorSeverity.HIGH,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSeverity.HIGH,
    ErrorCode.COMPRESSION_FAILED: ErrorSeverity.HIGH,
    ErrorCode.MISSING_CREDENTIAL: ErrorSeverity.MEDIUM,
    ErrorCode.INVALID_REQUEST: ErrorSeverity.MEDIUM,
    ErrorCode.PIPELINE_BUSY: ErrorSeverity.LOW,
    ErrorCode.CONVERSION_NOT_SUPPORTED: ErrorSeverity.LOW,
    ErrorCode.INVALID_FILE: ErrorSeverity.LOW,
    ErrorCode.NOT_FOUND: ErrorSeverity.LOW,
}


# ===== PIPELINE ERRORS =====

class PipelineError(Exception):
    """
    Base class for every failure raised while assembling a document.

    Attributes:
        code: Standardized error code
        item_id: Queue item that triggered the failure, None for run-level failures
        details: Extra structured information for the caller
    """

    code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        item_id: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.item_id = item_id
        if code is not None:
            self.code = code
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_MAP.get(self.code, 500)


class ConfigurationError(PipelineError):
    """A required credential is missing."""
    code = ErrorCode.MISSING_CREDENTIAL


class UnsupportedFormatError(PipelineError):
    """The item extension is not in the known set."""
    code = ErrorCode.CONVERSION_NOT_SUPPORTED


class TransportError(PipelineError):
    """Network failure while talking to the remote service."""
    code = ErrorCode.SERVICE_UNAVAILABLE


class RemoteServiceError(PipelineError):
    """Non-success response from the remote service."""
    code = ErrorCode.SERVICE_ERROR

    def __init__(
        self,
        message: str,
        item_id: Optional[str] = None,
        response_status: Optional[int] = None,
        invalid_parameters: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, item_id=item_id)
        self.response_status = response_status
        self.invalid_parameters = invalid_parameters or {}
        if response_status is not None:
            self.details["response_status"] = response_status
        if self.invalid_parameters:
            self.details["invalid_parameters"] = self.invalid_parameters


class DecodeError(PipelineError):
    """A source document could not be decoded locally."""
    code = ErrorCode.INVALID_FILE


class CompressionError(PipelineError):
    """The final compression pass failed; never attributed to an item."""
    code = ErrorCode.COMPRESSION_FAILED


class QueueBusyError(PipelineError):
    """The queue cannot be changed or run while a run is in flight."""
    code = ErrorCode.PIPELINE_BUSY


class ItemNotFoundError(PipelineError):
    """No queue item with the given id."""
    code = ErrorCode.NOT_FOUND


class InvalidTransitionError(PipelineError):
    """An item was moved through its state machine out of order."""
    code = ErrorCode.INVALID_TRANSITION


# ===== RESPONSE HELPERS =====

def create_error_response(
    error_code: Union[ErrorCode, str],
    service: Optional[str] = None,
    details: Optional[str] = None,
    status_code: Optional[int] = None,
    **kwargs
) -> JSONResponse:
    """
    Create a consistent JSON error response across all endpoints.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        service: Service name that generated the error
        details: Additional error details (will be truncated to 1000 chars)
        status_code: Override the default HTTP status code
        **kwargs: Additional fields to include in the error response

    Returns:
        JSONResponse with standardized error format
    """
    if isinstance(error_code, ErrorCode):
        error_type = error_code.value
        if status_code is None:
            status_code = ERROR_STATUS_MAP.get(error_code, 500)
        severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
    else:
        error_type = str(error_code)
        if status_code is None:
            status_code = 500
        severity = ErrorSeverity.MEDIUM

    error_data = {
        "error": error_type,
        "timestamp": datetime.now().isoformat() + "Z",
        "status_code": status_code,
        "severity": severity.value
    }

    if service:
        error_data["service"] = service

    if details:
        error_data["details"] = str(details)[:1000]

    error_data.update(kwargs)

    log_message = f"Error response: {error_data}"
    if severity == ErrorSeverity.CRITICAL:
        logger.critical(log_message)
    elif severity == ErrorSeverity.HIGH:
        logger.error(log_message)
    elif severity == ErrorSeverity.MEDIUM:
        logger.warning(log_message)
    else:
        logger.info(log_message)

    return JSONResponse(status_code=status_code, content=error_data)


def create_http_exception(
    error_code: Union[ErrorCode, str],
    details: Optional[str] = None,
    **kwargs
) -> HTTPException:
    """
    Create a FastAPI HTTPException with consistent error details.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        details: Error details to include
        **kwargs: Additional data for the exception

    Returns:
        HTTPException with standardized error format
    """
    if isinstance(error_code, ErrorCode):
        status_code = ERROR_STATUS_MAP.get(error_code, 500)
    else:
        status_code = 500

    error_details = {
        "error": error_code.value if isinstance(error_code, ErrorCode) else str(error_code),
        "timestamp": datetime.now().isoformat() + "Z"
    }

    if details:
        error_details["details"] = str(details)[:500]

    error_details.update(kwargs)

    return HTTPException(
        status_code=status_code,
        detail=error_details
    )


def handle_pipeline_error(error: PipelineError) -> JSONResponse:
    """
    Turn a failed run into the JSON body returned to the presentation layer.

    Args:
        error: The error that aborted the run

    Returns:
        JSONResponse carrying the message, the offending item id (None for
        run-level failures) and any structured detail
    """
    extra: Dict[str, Any] = {"item_id": error.item_id}
    if error.details:
        extra["context"] = error.details
    return create_error_response(
        error.code,
        service="convertapi" if isinstance(error, (RemoteServiceError, TransportError, CompressionError)) else None,
        details=error.message,
        **extra
    )
