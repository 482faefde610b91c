class ServiceError(Exception):
    """Base for failures reported to the caller in the response envelope."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    pass


class Conflict(ServiceError):
    pass


class NotFound(ServiceError):
    pass


class AuthError(ServiceError):
    pass


class TokenError(ServiceError):
    status_code = 500
