"""Translation of Firebase and Google API errors into tenancy errors."""

from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as google_exceptions

from payroll_admin.core.errors import TenancyError, UpstreamError, UpstreamUnavailableError

_TRANSIENT_FIREBASE = (
    firebase_exceptions.UnavailableError,
    firebase_exceptions.DeadlineExceededError,
    firebase_exceptions.InternalError,
    firebase_exceptions.ResourceExhaustedError,
)

_TRANSIENT_GOOGLE = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.TooManyRequests,
    google_exceptions.RetryError,
)


def translate_firebase_error(exc: firebase_exceptions.FirebaseError, operation: str) -> TenancyError:
    """Map a Firebase Admin SDK error to a tenancy error.

    Args:
        exc: Error raised by the SDK.
        operation: Name of the call that failed, for the error details.

    Returns:
        UpstreamUnavailableError for transient failures, UpstreamError otherwise.
    """
    details = {"operation": operation, "provider_code": exc.code}
    if isinstance(exc, _TRANSIENT_FIREBASE):
        return UpstreamUnavailableError(f"Identity provider unavailable: {exc}", details=details)
    return UpstreamError(f"Identity provider rejected {operation}: {exc}", details=details)


def translate_google_error(exc: google_exceptions.GoogleAPIError, operation: str) -> TenancyError:
    """Map a Google Cloud client error to a tenancy error."""
    details = {"operation": operation}
    if isinstance(exc, _TRANSIENT_GOOGLE):
        return UpstreamUnavailableError(f"Document store unavailable: {exc}", details=details)
    return UpstreamError(f"Document store rejected {operation}: {exc}", details=details)
