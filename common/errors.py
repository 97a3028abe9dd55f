"""Error taxonomy surfaced to API callers.

Every failure a caller can act on is raised as a ``CommerceError`` subclass.
The ``kind`` is stable and machine readable; ``message`` is for humans;
``details`` carries only what the caller needs to self-diagnose (for
instance the remaining stock count), never internal identifiers.
"""

from rest_framework import status


class CommerceError(Exception):
    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict:
        body = {"kind": self.kind, "detail": self.message, **self.details}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationFailed(CommerceError):
    """Caller input or cart state cannot be accepted; never retried automatically."""

    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(CommerceError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class TransitionInvalid(CommerceError):
    """State machine violation; details list the current and allowed states."""

    kind = "transition_invalid"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, current: str, allowed):
        super().__init__(message, current=current, allowed=list(allowed))


class DependencyUnavailable(CommerceError):
    """A backing collaborator could not be reached; safe for the caller to retry."""

    kind = "dependency_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
