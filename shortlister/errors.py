"""Exception hierarchy shared by the client, services and session manager."""


class ShortlisterError(Exception):
    """Base class for every error raised by this package."""


class ApiError(ShortlisterError):
    """The backend could not be reached or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnexpectedResponseError(ApiError):
    """The backend answered, but the body did not match the expected schema."""


class UploadError(ShortlisterError):
    """Client-side upload validation failed; nothing was sent."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"File validation failed: {', '.join(self.errors)}")


class SessionError(ShortlisterError):
    pass


class ShortlistingError(ShortlisterError):
    pass
