"""Error taxonomy for grant creation, viewing and consumption."""


class GrantError(Exception):
    """Base class for grant lifecycle errors."""


class DuplicateToken(GrantError):
    """Raised by a record store when the token is already taken."""

    def __init__(self, token: str):
        self.token = token
        super().__init__("Token already exists")


class RecordNotFound(GrantError):
    """Raised when a token has no live record (never existed or TTL-expired)."""


class AlreadyConsumed(GrantError):
    """Raised when another caller already won the consume transition."""


class GrantExpired(GrantError):
    """Raised by begin_view for any token that can no longer be viewed."""


class CreationFailed(GrantError):
    """Raised when no unique token could be stored within the retry budget."""


class StoreUnavailable(GrantError):
    """Raised when the record store fails or does not answer in time."""


class UploadFailed(GrantError):
    """Raised when the object store rejects or fails an upload."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
