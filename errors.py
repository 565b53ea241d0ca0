"""Errors raised by the auth guard, the stores and the engagement views.

Each error carries the HTTP status it is answered with; ``app.py`` turns
them into ``{"message": ...}`` responses.
"""

from typing import Optional


class BlogError(Exception):
    status_code = 500
    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthorized(BlogError):
    status_code = 401
    message = "Unauthorized"


class InvalidToken(BlogError):
    status_code = 401
    message = "Invalid token"


class Forbidden(BlogError):
    status_code = 403
    message = "You are not authorized to perform this action"


class NotFound(BlogError):
    status_code = 404
    message = "Not found"


class ValidationError(BlogError):
    status_code = 400
    message = "Invalid input"


class Conflict(ValidationError):
    status_code = 409
    message = "Already exists"
