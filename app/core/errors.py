# app/core/errors.py
from __future__ import annotations


class EngineError(Exception):
    """
    Base of the engine's error taxonomy.
    Each subclass carries the HTTP status the API layer maps it to.
    """

    status_code: int = 500
    code: str = "engine_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class Unauthorized(EngineError):
    status_code = 401
    code = "unauthorized"


class Forbidden(EngineError):
    status_code = 403
    code = "forbidden"


class InvalidArgument(EngineError, ValueError):
    status_code = 400
    code = "invalid_argument"


class InvalidIdentifier(InvalidArgument):
    code = "invalid_identifier"


class DuplicateMembership(InvalidArgument):
    # unique (project_id, user_id) violated; never an overwrite
    status_code = 409
    code = "duplicate_membership"


class NotFound(EngineError):
    status_code = 404
    code = "not_found"


class UpstreamFailure(EngineError):
    status_code = 502
    code = "upstream_failure"


class StorageFailure(EngineError):
    status_code = 503
    code = "storage_failure"
