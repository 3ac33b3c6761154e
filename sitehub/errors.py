"""Error types that describe why a request cannot be served."""


class AppError(Exception):
    """Base class for errors raised by the application services."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    """An element that was asked for is not available."""


class ValidationError(AppError):
    """Missing or invalid parameters were supplied."""


class SecurityError(AppError):
    """Access was denied because of wrong or missing permissions."""