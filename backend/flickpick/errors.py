from __future__ import annotations


class FlickPickError(Exception):
    """Base class for errors raised by the session core."""

    status_code = 500
    retryable = False


class ConflictError(FlickPickError):
    """Input collided with existing state (session code, second catalog seed)."""

    status_code = 409


class NotFoundError(FlickPickError):
    """Unknown id, unknown code, or a session that is no longer joinable."""

    status_code = 404


class TransientStoreError(FlickPickError):
    """The store is unreachable or a subscription was lost."""

    status_code = 503
    retryable = True


class ExhaustedError(FlickPickError):
    """Session code generation ran out of attempts."""

    status_code = 503
    retryable = True


class LifecycleError(FlickPickError):
    """Operation is not allowed in the session's current status."""

    status_code = 409


class PermissionDeniedError(FlickPickError):
    """Only the host may trigger this transition."""

    status_code = 403


class CatalogBuildError(FlickPickError):
    """The catalog-building collaborator (TMDB, CSV file) failed."""

    status_code = 502
    retryable = True
