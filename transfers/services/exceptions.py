"""Errors raised by the workflow services.

All of them derive from ``ValueError`` so callers that already guard model
transition methods with ``except ValueError`` keep working.
"""


class ServiceError(ValueError):
    """Base class for recoverable business-rule violations."""


class ChecklistValidationError(ServiceError):
    """Required evidence is missing. Names the predicate and the wizard step to return to."""

    def __init__(self, message, *, predicate, step):
        super().__init__(message)
        self.message = message
        self.predicate = predicate
        self.step = step


class ChecklistLockedError(ServiceError):
    """The protocol was already submitted and is read-only."""


class StateConflictError(ServiceError):
    """The requested change conflicts with the current state of the order or handoff."""


class TransitionNotAllowed(StateConflictError):
    def __init__(self, message, *, status=None, event=None):
        super().__init__(message)
        self.status = status
        self.event = event


class AuthorizationError(ServiceError):
    """The actor lacks company or role scope for the record."""


class ChecklistDraftError(ServiceError):
    """A protocol draft field has the wrong shape."""

    def __init__(self, message, *, field):
        super().__init__(message)
        self.message = message
        self.field = field
