"""Exception types raised by the screenshot engine."""


class ShotterError(Exception):
    """Base class for all engine errors."""

    status_code = 500


class InvalidRequestError(ShotterError):
    """The request carried nothing that can be captured."""

    status_code = 400


class SessionConflictError(ShotterError):
    """A session with the same id is already running."""

    status_code = 409


class SessionTimeoutError(ShotterError):
    """The session did not finish within the session timeout."""

    status_code = 408

    def __init__(self, message: str = "Operation timed out") -> None:
        super().__init__(message)


class ArchiveError(ShotterError):
    """Writing the manifest or compressing the session directory failed."""


class CaptureError(ShotterError):
    """A single capture task cannot run (e.g. unsupported browser engine)."""
