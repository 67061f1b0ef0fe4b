"""Export job error taxonomy.

Each error carries the HTTP status it is rendered with and a message that is
safe to show to the caller. Store and client failures never put their own
detail into ``message``.
"""


class ExportError(Exception):
    status_code = 500
    default_message = "Export request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ExportError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ExportError):
    status_code = 403
    default_message = "Forbidden"


class InvalidRequest(ExportError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(ExportError):
    status_code = 404
    default_message = "Export job not found"


class NotReady(ExportError):
    status_code = 409
    default_message = "Export is not ready yet"


class Conflict(ExportError):
    """A store-level constraint rejected the write (duplicate in-flight job,
    illegal status transition)."""
    status_code = 409
    default_message = "Conflicting export job"


class PersistenceFailure(ExportError):
    status_code = 500
    default_message = "Export storage is temporarily unavailable, please retry"


class UnexpectedFailure(ExportError):
    status_code = 500
    default_message = "Unexpected export failure"
