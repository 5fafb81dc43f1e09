class ProgressTrackingError(Exception):
    """Base class for failures raised by the progress tracking engine."""

    status_code = 500
    code = "PROGRESS_TRACKING_ERROR"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ReferentialIntegrityError(ProgressTrackingError):
    """The referenced user, lesson, course or enrollment does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConcurrencyConflictError(ProgressTrackingError):
    """An optimistic write kept losing the race after all retries."""

    status_code = 409
    code = "CONFLICT"


class InvariantViolation(ProgressTrackingError):
    """A write would break a progress invariant (negative time, un-completion)."""

    status_code = 422
    code = "INVARIANT_VIOLATION"


class InvalidTransitionError(ProgressTrackingError):
    status_code = 409
    code = "INVALID_TRANSITION"
