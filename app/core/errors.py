class EventServiceError(Exception):
    """Base class for errors the services raise towards the HTTP layer."""

    status_code = 400
    code = "ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EventServiceError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidTransitionError(EventServiceError):
    status_code = 400
    code = "INVALID_TRANSITION"


class PermissionDeniedError(EventServiceError):
    status_code = 403
    code = "PERMISSION_DENIED"


class ValidationError(EventServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"


class EventInPastError(EventServiceError):
    status_code = 400
    code = "EVENT_IN_PAST"


class CategoryRestrictedError(EventServiceError):
    status_code = 403
    code = "CATEGORY_RESTRICTED"


class AlreadyRegisteredError(EventServiceError):
    status_code = 409
    code = "ALREADY_REGISTERED"


class AlreadyWaitlistedError(EventServiceError):
    status_code = 409
    code = "ALREADY_WAITLISTED"


class NotRegisteredError(EventServiceError):
    status_code = 400
    code = "NOT_REGISTERED"


class RegistrationBusyError(EventServiceError):
    status_code = 409
    code = "REGISTRATION_BUSY"
