from __future__ import annotations


class PrepWiseError(Exception):
    """Base for errors that map onto an HTTP status and a machine-readable code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class BadRequest(PrepWiseError):
    status_code = 400
    code = "bad_request"


class Unauthorized(PrepWiseError):
    status_code = 401
    code = "unauthorized"


class Forbidden(PrepWiseError):
    status_code = 403
    code = "forbidden"


class NotFound(PrepWiseError):
    status_code = 404
    code = "not_found"


class Conflict(PrepWiseError):
    status_code = 409
    code = "conflict"
