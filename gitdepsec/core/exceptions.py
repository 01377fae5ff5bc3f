"""Custom exception hierarchy for GitDepSec.

Only caller mistakes and failed fetches are raised. Malformed plan payloads
and stream errors are recovered inside the aggregator; the stream error
classes exist so collaborators can report them with a precise type.
"""


class GitDepSecError(Exception):
    """Base exception for all GitDepSec errors."""
    pass


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(GitDepSecError):
    """Base exception for input validation errors."""
    pass


class InvalidRepositoryError(ValidationError):
    """Repository URL or identifier is malformed."""
    pass


# =============================================================================
# Client Errors (API/Network)
# =============================================================================

class ClientError(GitDepSecError):
    """Base exception for backend client errors."""
    pass


class NetworkError(ClientError):
    """Network connectivity or request error."""
    pass


class APIError(ClientError):
    """Error returned by the analysis backend."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


# =============================================================================
# Fix Plan Errors
# =============================================================================

class PlanParseError(GitDepSecError):
    """Fix plan payload could not be decoded."""
    pass


class StreamError(GitDepSecError):
    """Base exception for plan-generation stream errors."""
    pass


class CriticalStreamError(StreamError):
    """Error that stops the in-flight generation."""
    pass
