"""
Request handlers for the /api route group.

Each route resolves the database, validates its parameters, issues exactly
one call to the MongoDB client and serializes the result to JSON. Client
mistakes raise RequestError (HTTP 400); failures reported by MongoDB are
logged and returned as HTTP 500 with the driver's message.
"""

import json
import logging

import bson
from bson import json_util
from bson.errors import BSONError
from flask import jsonify, request
from pymongo.errors import PyMongoError

from .errors import RequestError

logger = logging.getLogger(__name__)

DATABASE_PARAM = "database"
LIMIT_PARAM = "limit"
PIPELINE_KEY = "Aggregate"

MAX_LIMIT = 2 ** 63 - 1


def parse_json_extended(raw):
    """Parse JSON with MongoDB extended JSON support."""
    return json_util.loads(raw)


def serialize_response(data):
    """Serialize MongoDB response to JSON-safe format."""
    return json.loads(json_util.dumps(data))


def read_json_object():
    """Decode the request body as an extended JSON object."""
    raw = request.get_data(as_text=True)
    try:
        body = parse_json_extended(raw)
    except (ValueError, TypeError, KeyError, BSONError) as e:
        raise RequestError(f"Error reading body request: {e}") from e
    if not isinstance(body, dict):
        raise RequestError("Error reading body request: body must be a JSON object")

    # Must also encode as BSON, e.g. ints fit in 8 bytes and keys have no NUL
    try:
        bson.encode(body)
    except (OverflowError, BSONError) as e:
        raise RequestError(f"Error reading body request: {e}") from e
    return body


class Handlers:
    """
    Views for the /api routes.

    The client and options are injected so any pymongo compatible client
    (a real MongoClient, mongomock, a mock) can back the routes.
    """

    def __init__(self, client, options):
        self.client = client
        self.options = options

    def register(self, blueprint):
        blueprint.add_url_rule("/databases", "databases", self.get_databases, methods=["GET"])
        blueprint.add_url_rule("/collections", "collections", self.get_collections, methods=["GET"])
        routes = (
            ("find", self.collection_find),
            ("count", self.collection_count),
            ("aggregate", self.collection_aggregate),
        )
        for route, view in routes:
            blueprint.add_url_rule(
                f"/collections/<name>/{route}", route, view, methods=["POST"]
            )
            # /collections//find etc, so an empty name gets a 400 instead of a 404
            blueprint.add_url_rule(
                f"/collections//{route}",
                f"{route}_unnamed",
                view,
                methods=["POST"],
                defaults={"name": ""},
                merge_slashes=False,
            )

    # --- Parameters -------------------------------------------------------------

    def resolve_database(self):
        """
        The configured default database always wins. Without one the
        caller has to pass ?database=<name>.
        """
        if self.options.default_db:
            return self.options.default_db

        db_name = request.args.get(DATABASE_PARAM, "").strip()
        if not db_name:
            raise RequestError("Database name was not passed, one is needed")
        return db_name

    def resolve_collection(self, name):
        coll_name = (name or "").strip()
        if not coll_name:
            raise RequestError("Collection name was not passed")
        return coll_name

    def resolve_limit(self):
        """Read ?limit=, 0 or missing means the configured default."""
        raw = request.args.get(LIMIT_PARAM, "").strip()
        if not raw:
            limit = 0
        else:
            try:
                limit = int(raw)
            except ValueError as e:
                raise RequestError(f"Limit is not an int: {e}") from e

        if limit < 0:
            raise RequestError("Limit can not be negative")
        if limit > MAX_LIMIT:
            raise RequestError("Limit is too large")
        if limit == 0:
            limit = self.options.find_limit

        max_limit = self.options.find_max_limit
        if max_limit and limit > max_limit:
            raise RequestError("Passed limit is greater than max limit set by server")
        return limit

    def resolve_pipeline(self):
        body = read_json_object()
        pipeline = body.get(PIPELINE_KEY)
        if not isinstance(pipeline, list):
            raise RequestError("Request Body is missing aggregate pipeline")
        if not all(isinstance(stage, dict) for stage in pipeline):
            raise RequestError("Aggregate pipeline stages must be JSON objects")
        return pipeline

    def _timeout(self, key):
        if self.options.query_timeout_ms:
            return {key: self.options.query_timeout_ms}
        return {}

    def _backend_error(self, context, e):
        message = f"{context}: {e}"
        logger.error("%s", message)
        return jsonify({"error": message}), 500

    # --- Routes -----------------------------------------------------------------

    def get_databases(self):
        """
        List database names.

        With a default database set only that name is returned, the server
        is not asked about any other database.
        """
        if self.options.default_db:
            return jsonify({"Databases": [self.options.default_db]})

        try:
            db_names = self.client.list_database_names()
        except PyMongoError as e:
            return self._backend_error("Error getting databases names", e)

        return jsonify({"Databases": db_names})

    def get_collections(self):
        """List collection names. GET /api/collections?database=app"""
        db_name = self.resolve_database()

        try:
            coll_names = self.client[db_name].list_collection_names()
        except PyMongoError as e:
            return self._backend_error("Error getting collection names", e)

        return jsonify({"Collections": coll_names})

    def collection_find(self, name):
        """
        Run a find on the collection.

        POST /api/collections/<name>/find?database=app&limit=100

        Request body is the find filter:
        {"UserName": "Jon"}
        """
        db_name = self.resolve_database()
        coll_name = self.resolve_collection(name)
        limit = self.resolve_limit()
        filter_query = read_json_object()

        # find is lazy, server errors only show up while iterating
        try:
            documents = list(self.client[db_name][coll_name].find(
                filter_query,
                limit=limit,
                allow_disk_use=True,
                **self._timeout("max_time_ms"),
            ))
        except PyMongoError as e:
            return self._backend_error("Error running find", e)
        except BSONError as e:
            return self._backend_error("Error decoding results", e)

        logger.info("find on %s.%s returned %d documents", db_name, coll_name, len(documents))
        return jsonify(serialize_response(documents))

    def collection_count(self, name):
        """
        Count documents matching a filter.

        POST /api/collections/<name>/count?database=app

        Request body is the count filter:
        {"status": "active"}
        """
        db_name = self.resolve_database()
        coll_name = self.resolve_collection(name)
        filter_query = read_json_object()

        try:
            count = self.client[db_name][coll_name].count_documents(
                filter_query, **self._timeout("maxTimeMS")
            )
        except PyMongoError as e:
            return self._backend_error("Error running count", e)

        return jsonify({"Count": count})

    def collection_aggregate(self, name):
        """
        Run an aggregation pipeline on the collection.

        POST /api/collections/<name>/aggregate?database=app

        Request body:
        {
            "Aggregate": [
                {"$match": {"UserName": "Jon"}},
                {"$group": {"_id": "$category", "count": {"$sum": 1}}}
            ]
        }
        """
        db_name = self.resolve_database()
        coll_name = self.resolve_collection(name)
        pipeline = self.resolve_pipeline()

        try:
            results = list(self.client[db_name][coll_name].aggregate(
                pipeline, allowDiskUse=True, **self._timeout("maxTimeMS")
            ))
        except PyMongoError as e:
            return self._backend_error("Error running aggregate", e)
        except BSONError as e:
            return self._backend_error("Error decoding results", e)

        logger.info("aggregate on %s.%s returned %d documents", db_name, coll_name, len(results))
        return jsonify(serialize_response(results))
