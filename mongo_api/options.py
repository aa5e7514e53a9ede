"""
Server options
==============
Configuration for the mongo api server. Build a `ServerOptions`, adjust it
with the setters, then hand it to `Server`. Once the server has built its
Flask app the options are frozen and the setters raise.

Environment variables read by `ServerOptions.from_env()`:

    MONGO_URI                   mongodb://localhost:27017
    MONGO_API_ADDRESS           :8080
    MONGO_API_DEFAULT_DB        (unset, every database is queryable)
    MONGO_API_FIND_LIMIT        1000
    MONGO_API_FIND_MAX_LIMIT    0 (no upper limit)
    MONGO_API_CUSTOM_ROUTE      custom
    MONGO_API_QUERY_TIMEOUT_MS  0 (no timeout)
"""

import os

from flask import Flask

from .errors import InvalidCustomRouteName

DEFAULT_ADDRESS = ":8080"
DEFAULT_MONGO_URI = "mongodb://localhost:27017"
DEFAULT_CUSTOM_ROUTE_NAME = "custom"
DEFAULT_FIND_LIMIT = 1000

RESERVED_ROUTE_NAMES = ("/", "/api")


def normalize_route_name(name):
    """Turn 'custom', '/custom' or 'custom/' into '/custom'."""
    return "/" + (name or "").strip().strip("/")


def parse_address(address):
    """
    Split a 'host:port' address. An empty host binds every interface,
    so ':8080' becomes ('0.0.0.0', 8080).
    """
    host, sep, port = (address or "").rpartition(":")
    if not sep:
        raise ValueError(f"Invalid address '{address}', expected host:port")
    try:
        port = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address '{address}'") from None
    return host or "0.0.0.0", port


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


class ServerOptions:
    """Options used to configure the mongo api server."""

    def __init__(self):
        self._frozen = False
        self.router = None
        self.address = DEFAULT_ADDRESS
        self.custom_route_name = normalize_route_name(DEFAULT_CUSTOM_ROUTE_NAME)
        self.mongo_uri = DEFAULT_MONGO_URI
        self.mongo_client_options = {}
        self.find_limit = DEFAULT_FIND_LIMIT
        self.find_max_limit = 0
        self.default_db = None
        self.query_timeout_ms = 0

    @classmethod
    def from_env(cls):
        """Build options from environment variables, falling back to defaults."""
        opts = cls()
        opts.set_mongo_uri(os.environ.get("MONGO_URI") or DEFAULT_MONGO_URI)
        opts.set_address(os.environ.get("MONGO_API_ADDRESS") or DEFAULT_ADDRESS)
        opts.set_default_db(os.environ.get("MONGO_API_DEFAULT_DB") or None)
        opts.set_find_limit(_env_int("MONGO_API_FIND_LIMIT", DEFAULT_FIND_LIMIT))
        opts.set_find_max_limit(_env_int("MONGO_API_FIND_MAX_LIMIT", 0))
        opts.set_custom_route_name(
            os.environ.get("MONGO_API_CUSTOM_ROUTE") or DEFAULT_CUSTOM_ROUTE_NAME
        )
        opts.set_query_timeout_ms(_env_int("MONGO_API_QUERY_TIMEOUT_MS", 0))
        return opts

    def __setattr__(self, name, value):
        if name != "_frozen" and getattr(self, "_frozen", False):
            raise RuntimeError("Server options can not be changed once the server is built")
        super().__setattr__(name, value)

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self):
        return self._frozen

    def get_router(self):
        """Return the Flask app to use, creating the default one on first use."""
        if self.router is None:
            self.router = Flask("mongo_api")
        return self.router

    def set_router(self, router):
        self.router = router

    def set_address(self, address):
        parse_address(address)
        self.address = address

    def set_custom_route_name(self, custom_route_name):
        # Custom group must not be root or api
        route_name = normalize_route_name(custom_route_name)
        if route_name in RESERVED_ROUTE_NAMES:
            raise InvalidCustomRouteName(f"invalid custom route name: '{custom_route_name}'")
        self.custom_route_name = route_name

    def set_mongo_uri(self, mongo_uri):
        self.mongo_uri = mongo_uri

    def set_mongo_client_options(self, **kwargs):
        """Extra keyword arguments passed through to pymongo.MongoClient."""
        self.mongo_client_options = dict(kwargs)

    def set_default_db(self, default_db):
        """
        Lock the collection routes to one database. The 'database' url
        parameter is then ignored and /api/databases only reports this one.
        """
        self.default_db = default_db or None

    def set_find_limit(self, find_limit):
        if find_limit < 1:
            raise ValueError("find limit must be at least 1")
        self.find_limit = find_limit

    def set_find_max_limit(self, find_max_limit):
        if find_max_limit < 0:
            raise ValueError("find max limit can not be negative, use 0 for no limit")
        self.find_max_limit = find_max_limit

    def set_query_timeout_ms(self, query_timeout_ms):
        if query_timeout_ms < 0:
            raise ValueError("query timeout can not be negative, use 0 for no timeout")
        self.query_timeout_ms = query_timeout_ms

    @property
    def host(self):
        return parse_address(self.address)[0]

    @property
    def port(self):
        return parse_address(self.address)[1]
