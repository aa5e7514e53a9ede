"""HTTP routes that query a MongoDB, made for Grafana JSON API / Infinity dashboards."""

from .errors import InvalidCustomRouteName, RequestError
from .handlers import Handlers
from .middleware import log_requests, require_api_key
from .options import ServerOptions
from .server import Server, new_server

__version__ = "1.0.0"

__all__ = [
    "Handlers",
    "InvalidCustomRouteName",
    "RequestError",
    "Server",
    "ServerOptions",
    "log_requests",
    "new_server",
    "require_api_key",
]
