"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        """Initialize exception with message, status code and optional rule code."""
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, code="not_found")


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, code="unauthorized")


class ValidationException(AppException):
    """Missing or malformed input."""

    def __init__(self, message: str = "Validation error", code: str = "invalid_input"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, code=code)


class PastDateException(ValidationException):
    """A date or time in the past was supplied where a future one is required."""

    def __init__(self, message: str = "Cannot book appointments in the past"):
        """Initialize with the past_date rule code."""
        super().__init__(message, code="past_date")


class SlotUnavailableException(AppException):
    """The requested slot is already taken or is not offered by the doctor."""

    def __init__(
        self,
        message: str = "This time slot is no longer available. Please select another time.",
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, code="slot_unavailable")


class StateConflictException(AppException):
    """Operation not permitted in the appointment's current state."""

    def __init__(self, message: str, code: str):
        """Initialize with 409 status code and the violated rule."""
        super().__init__(message, status_code=409, code=code)


class WindowExpiredException(AppException):
    """A time-bound policy window has closed; the patient must contact the clinic."""

    def __init__(self, message: str, code: str):
        """Initialize with 409 status code and the violated window."""
        super().__init__(message, status_code=409, code=code)
