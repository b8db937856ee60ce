# eventdesk/errors.py
"""Domain errors raised by the quote services.

Each carries the HTTP status the errors blueprint answers with, so routes can
let them propagate instead of translating them one by one.
"""


class EventDeskError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(EventDeskError):
    """Malformed or missing input; ``field`` names the offending input."""

    status_code = 400
    code = "validation_error"

    def __init__(self, field: str, message: str = ""):
        super().__init__(message or f"{field} is invalid")
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class AuthorizationError(EventDeskError):
    status_code = 403
    code = "forbidden"


class NotFoundError(EventDeskError):
    status_code = 404
    code = "not_found"


class InvalidStateError(EventDeskError):
    """Operation is not legal in the current lifecycle state."""

    status_code = 409
    code = "invalid_state"

    NOT_ACTIVE = "not-active"
    EXPIRED = "expired"
    ALREADY_RESPONDED = "already-responded"
    AWAITING_RESPONSE = "awaiting-response"
    FINALISED = "finalised"

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}
