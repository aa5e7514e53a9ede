"""Error types and their JSON rendering."""

from flask import jsonify


class RequestError(Exception):
    """Raised when a request is missing or has invalid input. Rendered as HTTP 400."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidCustomRouteName(ValueError):
    """Raised when the custom route group would shadow `/` or `/api`."""


def handle_request_error(e):
    return jsonify({"error": e.message}), e.status_code


def register_error_handlers(app):
    app.register_error_handler(RequestError, handle_request_error)
