"""
Application Errors
==================

Exception hierarchy shared by every layer.

Only the HTTP layer turns these into status codes. The agent turns them
into an apology message, the tools turn them into descriptive tool results,
and the memory layer wraps them in a failed MemoryResult.
"""


class AdvisorError(Exception):
    """
    Base class for all application errors.

    Attributes:
        status_code: HTTP status used if the error reaches the API layer
        error_code: Short machine-readable identifier
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.error_code,
            "details": self.details,
        }


class ConfigError(AdvisorError, ValueError):
    """A required setting is missing or unusable. Aborts startup."""
    error_code = "config_error"


class RequestValidationError(AdvisorError):
    """The inbound request body failed validation."""
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.message}


class CircuitOpenError(AdvisorError):
    """The circuit breaker is rejecting calls to the model."""
    status_code = 503
    error_code = "circuit_open"

    def __init__(self, message: str = "Circuit breaker is OPEN"):
        super().__init__(message)


class AgentTimeoutError(AdvisorError):
    """The whole retry loop ran past the request deadline."""
    status_code = 504
    error_code = "agent_timeout"

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Request timeout after {timeout_seconds:g} seconds")
        self.timeout_seconds = timeout_seconds


class EmptyModelResponseError(AdvisorError):
    """The model call returned nothing usable."""
    status_code = 502
    error_code = "empty_model_response"

    def __init__(self, message: str = "No response from agent"):
        super().__init__(message)


class GitHubAPIError(AdvisorError):
    """
    The GitHub API answered with an error status.

    Attributes:
        status: HTTP status returned by GitHub
        api_message: The "message" field of the error body, if any
    """
    status_code = 502
    error_code = "github_api_error"

    def __init__(self, status: int, api_message: str):
        super().__init__(f"GitHub API returned {status}: {api_message}")
        self.status = status
        self.api_message = api_message


class RepositoryNotFoundError(AdvisorError):
    """No repository could be resolved from the user's input."""
    status_code = 404
    error_code = "repository_not_found"

    def __init__(self, repository: str):
        super().__init__(f'Could not find repository matching "{repository}"')
        self.repository = repository


class ToolArgumentError(AdvisorError):
    """Arguments supplied by the model do not match a tool's schema."""
    status_code = 400
    error_code = "tool_argument_error"


class VectorStoreError(AdvisorError):
    """The vector store rejected a read or write."""
    status_code = 503
    error_code = "vector_store_error"
