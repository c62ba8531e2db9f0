"""Application errors rendered as ``{"message": ...}`` JSON responses."""


class AppError(Exception):
    status_code: int = 500
    message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationRequired(AppError):
    status_code = 401
    message = "Unauthorized"


class NotFound(AppError):
    status_code = 404
    message = "Not found"


class ValidationFailed(AppError):
    status_code = 400
    message = "Validation failed"


class PreconditionFailed(AppError):
    status_code = 400
    message = "Precondition failed"


class UpstreamUnavailable(AppError):
    """A call to the identity provider or the payment processor failed."""

    status_code = 500
    message = "Upstream service unavailable"
