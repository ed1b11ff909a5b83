class AppError(Exception):
    """Base error for all application-specific issues."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "APP_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404, code="NOT_FOUND")


class ForbiddenError(AppError):
    def __init__(self, message: str = "You are not allowed to modify this appointment"):
        super().__init__(message, status_code=403, code="FORBIDDEN")


class InvalidTransitionError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="INVALID_TRANSITION")


class SlotUnavailableError(AppError):
    def __init__(self, message: str = "Requested time slot is not available"):
        super().__init__(message, status_code=409, code="SLOT_UNAVAILABLE")


class ConflictError(AppError):
    """Concurrent modification detected on a versioned row."""

    def __init__(self, message: str = "Appointment was modified concurrently, retry the request"):
        super().__init__(message, status_code=409, code="CONFLICT")


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")


__all__ = [
    "AppError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidTransitionError",
    "SlotUnavailableError",
    "ConflictError",
    "ValidationError",
]
