class ChirpyError(Exception):
    """Base class for all errors raised by the record store and auth helpers."""


class StorageError(ChirpyError):
    """The backing file could not be used."""


class StorageIOError(StorageError):
    """The backing file could not be read or written."""


class FormatError(StorageError):
    """The backing file does not hold a well-formed snapshot document."""


class NotFoundError(ChirpyError):
    """A record or token is absent."""


class ChirpNotFoundError(NotFoundError):
    def __init__(self, chirp_id: int):
        super().__init__(f"chirp id {chirp_id} out of range")
        self.chirp_id = chirp_id


class UserNotFoundError(NotFoundError):
    def __init__(self, key):
        super().__init__(f"user {key} not found")
        self.key = key


class RefreshTokenNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("refresh token not found")


class ForbiddenError(ChirpyError):
    """The requester does not own the record it tries to mutate."""


class AuthError(ChirpyError):
    """Base class for credential failures."""


class ExpiredTokenError(AuthError):
    pass


class InvalidTokenError(AuthError):
    pass


class MalformedSubjectError(AuthError):
    pass
