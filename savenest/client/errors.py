class SaveNestError(Exception):
    """Base class for errors raised by the SaveNest client."""


class ValidationError(SaveNestError):
    """A user intent was rejected locally, before any remote call."""


class RemoteStoreError(SaveNestError):
    """The remote store rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
