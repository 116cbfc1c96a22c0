# utils/errors.py
from flask import jsonify


class ApiError(Exception):
    """Business-rule failure reported to the caller as {"ok": false, "error": message}."""
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self):
        return jsonify({"ok": False, "error": self.message}), self.status_code


class ValidationFailed(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409
