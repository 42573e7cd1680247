# services/errors.py

"""
Exceptions raised by the service layer.

Every error carries the HTTP status the JSON error handler in app.py answers
with, a human readable message, and (for validation problems) a dict of
field -> [messages].
"""

from models import as_utc


class SongSlabError(Exception):
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_dict(self):
        body = {"error": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFound(SongSlabError):
    """Absent, soft-deleted, or owned by someone else. Never leaks which."""
    status_code = 404
    default_message = "Not found."


class Unauthenticated(SongSlabError):
    status_code = 401
    default_message = "Unauthenticated."


class Forbidden(SongSlabError):
    status_code = 403
    default_message = "You do not have access to this song."


class ValidationFailed(SongSlabError):
    status_code = 422
    default_message = "Validation failed."


class ContentRejected(SongSlabError):
    status_code = 422
    default_message = "Content rejected."


class DuplicateRequest(SongSlabError):
    status_code = 409
    default_message = "You already have a request for this song."

    def __init__(self, message=None, member=None):
        super().__init__(message)
        self.member = member

    def to_dict(self):
        body = super().to_dict()
        if self.member is not None:
            body["status"] = self.member.status
            requested_at = as_utc(self.member.requested_at)
            body["requested_at"] = requested_at.isoformat() if requested_at else None
        return body


class InvalidTransition(SongSlabError):
    status_code = 400
    default_message = "This request has already been responded to."
