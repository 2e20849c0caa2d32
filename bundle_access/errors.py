"""Exception types shared by services and blueprints."""

from google.api_core import exceptions as google_exceptions


class BundleAccessError(Exception):
    """Base class for domain errors raised by bundle_access services."""

    status_code = 500
    retryable = False


class StoreUnavailableError(BundleAccessError):
    """A Firestore read or write failed for reasons other than absence.

    Callers must surface these as retryable, never as access denied.
    """

    status_code = 503
    retryable = True


class PurchaseNotFoundError(BundleAccessError):
    status_code = 404


class BundleNotFoundError(BundleAccessError):
    status_code = 404


STORE_ERRORS = (
    google_exceptions.GoogleAPICallError,
    google_exceptions.RetryError,
    ConnectionError,
    TimeoutError,
)
