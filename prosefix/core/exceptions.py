"""Custom exception classes for Prosefix.

Includes:
- Base exception carrying HTTP status and error code for API responses
- Request-level errors (bad input, unreachable model host)
- Invocation errors recovered per paragraph by the dispatcher
- Stream and configuration persistence faults
"""

from datetime import UTC, datetime


class ProsefixException(Exception):
    """Base exception for all Prosefix errors."""

    def __init__(
        self, detail: str, status_code: int = 500, error_code: str = "internal_error"
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self):
        """Convert exception to dictionary for API response."""
        return {
            "error": self.error_code,
            "message": self.detail,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
        }


# =============================================================================
# REQUEST EXCEPTIONS (fail fast, before any output is streamed)
# =============================================================================


class InputError(ProsefixException):
    """Raised when the request text is missing or blank."""

    def __init__(self, detail: str = "No text provided."):
        super().__init__(detail=detail, status_code=400, error_code="invalid_input")


class HostUnavailableError(ProsefixException):
    """Raised when the model host cannot be reached before dispatch."""

    def __init__(self, host: str, port: int):
        super().__init__(
            detail=(
                f"Ollama is not reachable on {host}:{port}. Please start Ollama "
                "(e.g., 'ollama serve') and try again."
            ),
            status_code=503,
            error_code="model_unavailable",
        )
        self.host = host
        self.port = port


# =============================================================================
# INVOCATION EXCEPTIONS (recovered per job by the dispatcher)
# =============================================================================


class InvocationError(ProsefixException):
    """Base class for a single failed model invocation."""

    def __init__(
        self,
        detail: str,
        model: str | None = None,
        status_code: int = 502,
        error_code: str = "invocation_error",
    ):
        super().__init__(detail=detail, status_code=status_code, error_code=error_code)
        self.model = model


class InvocationTimeoutError(InvocationError):
    """Raised when a model invocation exceeds its wall-clock timeout."""

    def __init__(self, timeout: float, model: str | None = None):
        super().__init__(
            detail=f"ollama run timed out after {timeout:g}s",
            model=model,
            status_code=504,
            error_code="invocation_timeout",
        )
        self.timeout = timeout


class InvocationFailureError(InvocationError):
    """Raised when the model process exits unsuccessfully or cannot start."""

    def __init__(
        self,
        detail: str,
        model: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(
            detail=detail,
            model=model,
            status_code=502,
            error_code="invocation_failed",
        )
        self.returncode = returncode
        self.stderr = stderr


# =============================================================================
# STREAM / CONFIG EXCEPTIONS
# =============================================================================


class StreamFault(ProsefixException):
    """Unexpected failure inside the dispatch loop itself."""

    def __init__(self, detail: str = "stream_error", original_error: Exception | None = None):
        super().__init__(detail=detail, status_code=500, error_code="stream_error")
        self.original_error = original_error


class ConfigPersistError(ProsefixException):
    """Raised when the configuration file cannot be written."""

    def __init__(self, detail: str):
        super().__init__(
            detail=f"Could not persist configuration: {detail}",
            status_code=500,
            error_code="config_write_error",
        )
