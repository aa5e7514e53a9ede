"""
Ready made middleware for Server.set_api_middleware() and
Server.set_custom_middleware(). Each factory returns a before_request
function; returning a response from it ends the request early.
"""

import hmac
import logging

from flask import jsonify, request

API_KEY_HEADER = "X-API-Key"


def require_api_key(api_key, header=API_KEY_HEADER):
    """Reject requests whose API key header does not match."""
    if not api_key:
        raise ValueError("api_key must be a non-empty string")

    def check_api_key():
        provided_key = request.headers.get(header)
        if not provided_key or not hmac.compare_digest(provided_key, api_key):
            return jsonify({"error": "Unauthorized - Invalid or missing API key"}), 401
        return None

    return check_api_key


def log_requests(logger=None):
    """Log method, path and query string of every request."""
    logger = logger or logging.getLogger("mongo_api.requests")

    def log_request():
        query = request.query_string.decode("utf-8", "replace")
        if query:
            logger.info("%s %s?%s", request.method, request.path, query)
        else:
            logger.info("%s %s", request.method, request.path)
        return None

    return log_request
