"""Exception hierarchy for the NLP core.

Every failure that can reach the orchestrator derives from ``CasheError``.
The orchestrator turns them into user-facing text; the HTTP layer turns the
ones that escape a request (bad payloads, unknown users) into JSON.
"""

from typing import Any, Dict, List, Optional


class CasheError(Exception):
    """Base error carrying an HTTP-ish status code and optional details."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code or 500
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CasheError):
    """User input that parsed but is not acceptable (bad amount, bad date, same-account transfer).

    ``response_key`` names the response template the orchestrator shows.
    """

    def __init__(self, message: str, response_key: str = "ERROR_GENERICO",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)
        self.response_key = response_key


class PersistenceError(CasheError):
    """A repository read or write failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=503, details=details)


class ExternalServiceError(CasheError):
    """The LLM provider was unreachable or returned garbage."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class StateConflictError(CasheError):
    """Conversation state changed between read and write (version mismatch)."""

    def __init__(self, platform: str, platform_user_id: str,
                 expected_version: Optional[int] = None):
        super().__init__(
            f"Conversation state for {platform}:{platform_user_id} changed concurrently",
            status_code=409,
            details={"expected_version": expected_version},
        )
        self.platform = platform
        self.platform_user_id = platform_user_id


class DisambiguationRequired(CasheError):
    """Raised by resolution when a reference matches several candidates."""

    def __init__(self, field: str, options: List[Any]):
        super().__init__(f"Ambiguous reference for {field}", status_code=300,
                         details={"field": field})
        self.field = field
        self.options = options
