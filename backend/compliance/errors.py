"""Error taxonomy for the compliance flows and provider error classification."""

from dataclasses import dataclass
from typing import Optional


class ComplianceError(Exception):
    """Base class for errors surfaced by the compliance services."""

    error = "Internal Server Error"
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ComplianceError):
    """Malformed input. Surfaced to the caller, never retried."""

    error = "Invalid request body"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ComplianceError):
    error = "Not Found"
    status_code = 404


class ConflictError(ComplianceError):
    error = "Conflict"
    status_code = 409


class AuthError(ComplianceError):
    """Identity provider rejected the credentials or the token call failed."""

    error = "Service Unavailable"
    status_code = 503


class ServiceUnavailable(ComplianceError):
    """A required provider could not be reached within the attempt budget."""

    error = "Service Unavailable"
    status_code = 503


class ProviderError(ComplianceError):
    """Non-2xx (or transport failure) from an external provider."""

    error = "Bad Gateway"
    status_code = 502

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message, details=details)
        self.provider_status = provider_status


class ExclusionServiceError(ProviderError):
    """The self-exclusion registry call did not complete."""


class CorrelationError(ComplianceError):
    """A batch result could not be matched back to its user."""

    def __init__(self, correlation_id: str):
        super().__init__(f"No batch result returned for correlation id {correlation_id}")
        self.correlation_id = correlation_id


class SelfExclusionError(ComplianceError):
    """The user is registered with the self-exclusion scheme."""

    error = "Self-Exclusion Active"
    status_code = 403

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or (
                "You are currently self-excluded from betting activities through GamStop. "
                "This restriction prevents you from accessing your account. If you believe "
                "this is an error, please contact support."
            )
        )


def is_transient(exc: BaseException) -> bool:
    """Whether a failure is worth retrying (5xx, 429, timeouts, transport errors)."""
    if isinstance(exc, (ValidationError, ConflictError, NotFoundError)):
        return False
    if isinstance(exc, ProviderError) and exc.provider_status is not None:
        status = exc.provider_status
        return status == 429 or status >= 500
    return True


@dataclass(frozen=True)
class ClassifiedError:
    """Presentation-level view of a provider failure."""
    code: str
    message: str


# Checked in order; first keyword hit wins.
_IDENTITY_ERROR_RULES = [
    (("401", "auth failed"), "AUTH_FAILED", "Authentication failed. Please check GBG credentials."),
    (("403", "forbidden"), "FORBIDDEN", "Access denied. Insufficient permissions or invalid credentials."),
    (("429", "rate limit"), "RATE_LIMIT", "Rate limit exceeded. Please try again later."),
    (("500", "service error"), "SERVICE_ERROR", "GBG service error. Please try again later."),
    (("timeout", "timed out"), "TIMEOUT", "Verification timed out. Please try again."),
    (("invalid", "validation"), "VALIDATION_ERROR", "Invalid data provided. Please check your input."),
]

_EXCLUSION_ERROR_RULES = [
    (("400",), "INVALID_REQUEST", "Gamstop authentication failed. Please check if all necessary data are sent."),
    (("403",), "INVALID_REQUEST", "Access denied to Gamstop API. Whitelist ip or API key is invalid"),
    (("405",), "INVALID_REQUEST", "Access denied to Gamstop API. Request was not using POST method"),
]


def _classify(exc: Optional[BaseException], rules, fallback: str) -> ClassifiedError:
    if exc is None:
        return ClassifiedError(code="UNKNOWN_ERROR", message=fallback)

    text = str(exc)
    lowered = text.lower()
    for keywords, code, message in rules:
        if any(keyword in lowered for keyword in keywords):
            return ClassifiedError(code=code, message=message)

    return ClassifiedError(code="UNKNOWN_ERROR", message=text or fallback)


def classify_identity_error(exc: Optional[BaseException]) -> ClassifiedError:
    """Map an identity provider failure to a stable code and message."""
    return _classify(exc, _IDENTITY_ERROR_RULES, "An unexpected error occurred")


def classify_exclusion_error(exc: Optional[BaseException]) -> ClassifiedError:
    """Map a self-exclusion registry failure to a stable code and message."""
    return _classify(
        exc,
        _EXCLUSION_ERROR_RULES,
        "An unexpected error occurred during Gamstop check",
    )
