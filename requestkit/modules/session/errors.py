"""Errors raised by the session module."""


class SessionStoreError(Exception):
    """The session store could not complete a read or write."""


class SessionPersistError(SessionStoreError):
    """A session could not be saved when its request scope was released."""

    def __init__(self, session_id: str, message: str):
        super().__init__(message)
        self.session_id = session_id
