"""
Error taxonomy for the review engine.

Services raise these; ``main.py`` renders them as JSON with the HTTP status
each class carries. Every failure is returned to the caller, none is fatal.
"""


class ReviewError(Exception):
    status_code = 400
    code = "review_error"

    def __init__(self, detail: str, owner: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.owner = owner

    def to_dict(self) -> dict:
        return {"detail": self.detail, "error": self.code, "owner": self.owner}


class NotFound(ReviewError):
    status_code = 404
    code = "not_found"


class Conflict(ReviewError):
    """Someone else holds the lock (``owner``), or an open submission already exists."""

    status_code = 409
    code = "conflict"


class Forbidden(ReviewError):
    status_code = 403
    code = "forbidden"


class InvalidState(ReviewError):
    status_code = 409
    code = "invalid_state"


class JustificationRequired(InvalidState):
    status_code = 422
    code = "justification_required"


class Denied(ReviewError):
    status_code = 403
    code = "denied"


class PropagationError(ReviewError):
    """Curriculum data is inconsistent, so unlocks could not be computed."""

    status_code = 409
    code = "propagation_failed"
