"""
Custom Exception Classes for the Taskflow comment engine.

Each error carries the HTTP status the API layer responds with, so services
can raise them directly and routers do not need to translate.
"""
from fastapi import HTTPException, status


class RecordNotFound(HTTPException):
    """Exception raised when a comment, notification or member does not exist."""

    def __init__(self, resource: str, id: object = None):
        detail = f"{resource} not found" + (f": {id}" if id is not None else "")
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        self.resource = resource
        self.record_id = id


class NotAuthor(HTTPException):
    """Exception raised when someone other than the author edits a comment."""

    def __init__(self, message: str = "You can only edit your own comments"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class EditWindowExpired(HTTPException):
    """Exception raised when a comment is edited after its edit window closed."""

    def __init__(self, window_seconds: int):
        minutes = window_seconds // 60 if window_seconds % 60 == 0 else window_seconds / 60
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                "Edit window has expired. Comments can only be edited within "
                f"{minutes} minutes of posting."
            ),
        )
        self.window_seconds = window_seconds


class ValidationError(HTTPException):
    """Exception raised when comment input fails validation."""

    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class RosterUnavailable(HTTPException):
    """Exception raised by a roster source that cannot list members."""

    def __init__(self, message: str = "Team roster is unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
