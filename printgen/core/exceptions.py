"""Custom exception hierarchy for printgen.

All exceptions inherit from BaseError and carry structured error information
compatible with RFC 7807 Problem Details, so the job-trigger layer can map
them to responses without inspecting messages.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Error categories for classification and monitoring."""

    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    EXTERNAL_SERVICE = "external_service"
    VALIDATION = "validation"


class BaseError(Exception):
    """Base exception for all printgen errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        http_status: HTTP status code the trigger layer should return
        details: Additional context (dict)
        retryable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        http_status: int,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.http_status = http_status
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 Problem Details format."""
        return {
            "type": f"/errors/{self.error_code}",
            "title": self.message,
            "status": self.http_status,
            "code": self.error_code,
            "detail": self.details.get("detail"),
            "category": self.category.value,
            "retryable": self.retryable,
        }


class ClientError(BaseError):
    """Base for errors caused by the job or request itself. Never retried."""

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=kwargs.pop("category", ErrorCategory.CLIENT_ERROR),
            http_status=kwargs.pop("http_status", 400),
            retryable=False,
            **kwargs,
        )


class InvalidJobError(ClientError):
    """Job descriptor or layout constants cannot be planned (422).

    Args:
        message: What is wrong with the job
        field: Name of the offending field
    """

    def __init__(self, message: str, field: str, **kwargs):
        additional_details = kwargs.pop("details", {})
        additional_details["field"] = field
        super().__init__(
            message=message,
            error_code="INVALID_JOB",
            category=ErrorCategory.VALIDATION,
            http_status=422,
            details=additional_details,
            **kwargs,
        )


class UnsupportedTemplateError(ClientError):
    """Template kind has no dimension or layout policy."""

    def __init__(self, template_kind: str):
        super().__init__(
            message=f"Unsupported template: {template_kind}",
            error_code="UNSUPPORTED_TEMPLATE",
            http_status=422,
            details={"template_kind": template_kind},
        )


class RenderRequestRejectedError(ClientError):
    """The render or merge function rejected the request as bad input.

    Retrying cannot help, so the retry policy lets this propagate at once.
    """

    def __init__(self, service_name: str, http_status: int, remote_message: str, **kwargs):
        additional_details = kwargs.pop("details", {})
        additional_details.update(
            {"service": service_name, "remote_status": http_status, "detail": remote_message}
        )
        super().__init__(
            message=f"{service_name} rejected request: {remote_message}",
            error_code=f"{service_name.upper()}_BAD_INPUT",
            http_status=400,
            details=additional_details,
            **kwargs,
        )


class ServerError(BaseError):
    """Base for failures inside the pipeline or its dependencies."""

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=kwargs.pop("category", ErrorCategory.SERVER_ERROR),
            http_status=kwargs.pop("http_status", 500),
            retryable=kwargs.pop("retryable", False),
            **kwargs,
        )


class ExternalServiceError(ServerError):
    """External service failure (render function, merge function, S3).

    These errors are retryable as they may be transient.

    Args:
        service_name: Name of the external service
        error_type: "timeout", "unavailable", "rate_limit" or "error"
        remote_message: Error text reported by the service, kept verbatim
        retry_after: Seconds the service asked us to wait, if it said so
    """

    def __init__(
        self,
        service_name: str,
        error_type: str,
        remote_message: Optional[str] = None,
        retry_after: Optional[float] = None,
        **kwargs,
    ):
        if error_type == "timeout":
            http_status = 504
        elif error_type == "rate_limit":
            http_status = 429
        else:
            http_status = 502

        additional_details = kwargs.pop("details", {})
        additional_details.update({"service": service_name, "error_type": error_type})
        if remote_message:
            additional_details["detail"] = remote_message
        if retry_after is not None:
            additional_details["retry_after"] = retry_after

        message = f"{service_name} service {error_type}"
        if remote_message:
            message = f"{message}: {remote_message}"

        super().__init__(
            message=message,
            error_code=f"{service_name.upper()}_{error_type.upper()}",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=http_status,
            retryable=True,
            details=additional_details,
            **kwargs,
        )
        self.service_name = service_name
        self.error_type = error_type
        self.retry_after = retry_after


class ArtifactStoreError(ExternalServiceError):
    """Reading or writing an intermediate artifact failed."""

    def __init__(self, operation: str, key: str, reason: str):
        super().__init__(
            service_name="S3",
            error_type="error",
            remote_message=f"{operation} {key}: {reason}",
            details={"operation": operation, "key": key},
        )


class ChunkRenderError(ServerError):
    """A chunk could not be rendered after all retry attempts."""

    def __init__(self, chunk_index: int, attempts: int, reason: str):
        super().__init__(
            message=f"Chunk {chunk_index} failed after {attempts} attempts: {reason}",
            error_code="CHUNK_RENDER_FAILED",
            http_status=502,
            details={"chunk_index": chunk_index, "attempts": attempts, "detail": reason},
        )
        self.chunk_index = chunk_index
        self.attempts = attempts


class MergeError(ServerError):
    """The remote merge operation failed or returned an unusable answer."""

    def __init__(self, reason: str, key_count: int = 0):
        super().__init__(
            message=f"Merge failed: {reason}",
            error_code="MERGE_FAILED",
            http_status=502,
            details={"key_count": key_count, "detail": reason},
        )


class PostProcessingError(ServerError):
    """An intermediate document could not be parsed or transformed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"Post-processing '{operation}' failed: {reason}",
            error_code="POST_PROCESSING_FAILED",
            details={"operation": operation, "detail": reason},
        )


class JobTimeoutError(ServerError):
    """The job as a whole exceeded its time limit."""

    def __init__(self, job_id: str, timeout_seconds: float):
        super().__init__(
            message=f"Job {job_id} exceeded {timeout_seconds:g}s",
            error_code="JOB_TIMEOUT",
            http_status=504,
            details={"job_id": job_id, "timeout_seconds": timeout_seconds},
        )
