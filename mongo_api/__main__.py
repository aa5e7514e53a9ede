#!/usr/bin/env python3
"""
Mongo API Bridge
================
Run the server from the command line. Flags override the environment
variables read by ServerOptions.from_env().

Usage:
    export MONGO_URI="mongodb://localhost:27017"
    python3 -m mongo_api --address :8080 --default-db app

    For HTTPS:
    python3 -m mongo_api --ssl --cert cert.pem --key key.pem
"""

import argparse
import logging
import os
import sys

from pymongo.errors import PyMongoError

from .middleware import log_requests, require_api_key
from .options import ServerOptions
from .server import new_server

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level):
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)


def build_parser():
    parser = argparse.ArgumentParser(description="Mongo API Bridge")
    parser.add_argument("--address", help="host:port to listen on, default :8080")
    parser.add_argument("--mongo-uri", help="MongoDB connection string")
    parser.add_argument("--default-db", help="Only allow queries on this database")
    parser.add_argument("--find-limit", type=int, help="Default number of records find returns")
    parser.add_argument("--find-max-limit", type=int, help="Upper limit for find, 0 is no limit")
    parser.add_argument("--custom-route", help="Route group name for custom routes")
    parser.add_argument("--query-timeout-ms", type=int, help="maxTimeMS for each query, 0 is none")
    parser.add_argument("--api-key", default=os.environ.get("API_KEY"),
                        help="Require this X-API-Key header on /api routes")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    parser.add_argument("--ssl", action="store_true", help="Enable HTTPS (requires pyopenssl)")
    parser.add_argument("--cert", default="cert.pem", help="SSL certificate file")
    parser.add_argument("--key", default="key.pem", help="SSL key file")
    return parser


def options_from_args(args):
    opts = ServerOptions.from_env()
    if args.address:
        opts.set_address(args.address)
    if args.mongo_uri:
        opts.set_mongo_uri(args.mongo_uri)
    if args.default_db:
        opts.set_default_db(args.default_db)
    if args.find_limit is not None:
        opts.set_find_limit(args.find_limit)
    if args.find_max_limit is not None:
        opts.set_find_max_limit(args.find_max_limit)
    if args.custom_route:
        opts.set_custom_route_name(args.custom_route)
    if args.query_timeout_ms is not None:
        opts.set_query_timeout_ms(args.query_timeout_ms)
    return opts


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())

    try:
        opts = options_from_args(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    server = new_server(opts)
    server.set_api_middleware(log_requests())
    if args.api_key:
        server.set_api_middleware(require_api_key(args.api_key))

    print(f"\nMongoDB URI: {opts.mongo_uri}")
    print(f"Starting server on {opts.host}:{opts.port}")
    print(f"Default database: {opts.default_db or '(none, pass ?database=)'}")
    print(f"SSL: {'Enabled' if args.ssl else 'Disabled'}")
    print(f"\nTest connection:")
    print(f"   curl http://{'localhost' if opts.host == '0.0.0.0' else opts.host}:{opts.port}/\n")

    run_kwargs = {}
    if args.ssl:
        run_kwargs["ssl_context"] = (args.cert, args.key)
        print(f"   Using SSL cert: {args.cert}, key: {args.key}")

    try:
        server.start(**run_kwargs)
    except PyMongoError as e:
        print(f"Could not connect to MongoDB: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
