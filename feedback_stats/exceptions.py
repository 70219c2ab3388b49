"""Project-wide custom exception types."""


class AlreadySubmittedError(RuntimeError):
    """Raised when a response (or device) is submitted to a session more than once."""

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)


class SessionNotFoundError(ValueError):
    """Raised when an operation targets a session id the store does not know."""


class SessionClosedError(RuntimeError):
    """Raised when a response is submitted to a session that is no longer active."""


class RepositoryFetchError(RuntimeError):
    """Raised when responses for a session could not be fetched.

    The session is left untouched when this is raised during a close.
    """


class SessionWriteError(RuntimeError):
    """Raised when compiled stats could not be persisted on the session."""
