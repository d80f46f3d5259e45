"""Error taxonomy for the analysis flow."""


class NutriSyncError(Exception):
    """Base error for the application."""


class InputError(NutriSyncError):
    """Raised when the user has not supplied enough input."""


class ServiceError(NutriSyncError):
    """Raised when the reasoning service call fails."""


class MalformedResponse(ServiceError):
    """Raised when the reasoning service reply violates the output contract."""


class EmptyResponse(MalformedResponse):
    """Raised when the reasoning service reply carries no text."""


class PersistenceError(NutriSyncError):
    """Raised when the remote store rejects a read or write."""


class EntitlementError(NutriSyncError):
    """Raised when a user has no analyses left."""


class PaymentError(NutriSyncError):
    """Raised when a payment cannot be initiated or verified."""


class SessionStateError(NutriSyncError):
    """Raised when an action is not allowed in the current session state."""


class SessionBusyError(SessionStateError):
    """Raised when an analysis is already in flight for the session."""


class SessionNotFoundError(NutriSyncError):
    """Raised when a session token is unknown."""
