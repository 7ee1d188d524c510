"""Error taxonomy shared by the service and the HTTP layer."""


class TrackerError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(TrackerError):
    """A required field is missing or a value is out of range."""

    status_code = 400


class NotFoundError(TrackerError):
    """The row does not exist or belongs to another owner.

    Both cases share this error so that callers cannot probe for ids
    owned by somebody else.
    """

    status_code = 404


class ConflictError(TrackerError):
    """A uniqueness constraint rejected the write."""

    status_code = 409


class MigrationError(Exception):
    """Schema upgrade failed; the application must not start."""
