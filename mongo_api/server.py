"""
Mongo API Server
================
Creates a Flask server with routes to query a MongoDB. The routes are meant
to be used with the JSON API or Infinity plugin in Grafana to build MongoDB
dashboards.

Available default routes:

    GET  /                                   Always 200, test connection
    GET  /api/databases                      Available databases, or only the default one
    GET  /api/collections                    Collections of the default or ?database= db
    POST /api/collections/<name>/find        Find with the filter in the body
    POST /api/collections/<name>/count       Count with the filter in the body
    POST /api/collections/<name>/aggregate   Aggregate with {"Aggregate": [...]} body
    GET  /custom/<route>                     User defined GET route
    POST /custom/<route>                     User defined POST route

Example:

    opts = ServerOptions()
    opts.set_mongo_uri("mongodb://localhost:27017")
    opts.set_default_db("app")

    server = Server(opts)

    def app_users_count():
        client = server.get_mongo_client()
        return jsonify({"Count": client["app"]["users"].count_documents({})})

    server.add_custom_get("/appUsersCount", app_users_count)
    server.start()
"""

import logging

from flask import Blueprint
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .errors import register_error_handlers
from .handlers import Handlers

logger = logging.getLogger(__name__)


class Server:
    """Mongo api server. Routes and middleware must be added before the app is built."""

    def __init__(self, options, client=None):
        self.options = options
        self.router = options.get_router()
        self.api_router = Blueprint("mongo_api", __name__, url_prefix="/api")
        self.custom_router = Blueprint("mongo_api_custom", __name__)
        self._client = client
        self._owns_client = client is None
        self._app = None

    # --- Extension points -------------------------------------------------------

    def _ensure_not_built(self):
        if self._app is not None:
            raise RuntimeError("Routes and middleware must be added before the app is built")

    def set_api_middleware(self, *middleware):
        """
        Add before_request functions to the /api group, e.g. logging or
        auth. A function returning a response ends the request early.
        """
        self._ensure_not_built()
        for func in middleware:
            self.api_router.before_request(func)

    def set_custom_middleware(self, *middleware):
        """Add before_request functions to the custom route group."""
        self._ensure_not_built()
        for func in middleware:
            self.custom_router.before_request(func)

    def add_custom_get(self, relative_path, view_func, endpoint=None):
        """Add a GET route under the custom route group."""
        self._ensure_not_built()
        self.custom_router.add_url_rule(relative_path, endpoint, view_func, methods=["GET"])

    def add_custom_post(self, relative_path, view_func, endpoint=None):
        """Add a POST route under the custom route group."""
        self._ensure_not_built()
        self.custom_router.add_url_rule(relative_path, endpoint, view_func, methods=["POST"])

    def get_mongo_client(self):
        """
        Return the server's MongoClient. Use it in custom routes to
        query the db directly.
        """
        return self._client

    # --- Lifecycle --------------------------------------------------------------

    def connect(self):
        """Create the MongoClient if one was not injected and ping it."""
        if self._client is None:
            self._client = MongoClient(self.options.mongo_uri, **self.options.mongo_client_options)
            self._owns_client = True

        try:
            self._client.admin.command("ping")
        except PyMongoError as e:
            logger.error("Failed to connect or ping MongoDB: %s", e)
            self.close()
            raise
        logger.info("MongoDB connection validated via ping.")
        return self._client

    def create_app(self):
        """Register the routes on the Flask app and return it. Safe to call twice."""
        if self._app is not None:
            return self._app
        if self._client is None:
            raise RuntimeError("MongoDB client is not set, call connect() first")

        app = self.router

        def index():
            """Test connection, always 200."""
            return "", 200

        app.add_url_rule("/", "mongo_api_index", index, methods=["GET"])

        Handlers(self._client, self.options).register(self.api_router)
        app.register_blueprint(self.api_router)
        app.register_blueprint(self.custom_router, url_prefix=self.options.custom_route_name)
        register_error_handlers(app)
        app.extensions["mongo_api"] = self

        self.options.freeze()
        self._app = app
        logger.info("Routes set, custom routes under %s", self.options.custom_route_name)
        return app

    def start(self, **run_kwargs):
        """
        Connect, ping and serve. Blocks until the server stops. The client
        is closed on the way out.
        """
        self.connect()
        try:
            app = self.create_app()
            logger.info("Starting server on %s:%s", self.options.host, self.options.port)
            app.run(host=self.options.host, port=self.options.port, threaded=True, **run_kwargs)
        finally:
            self.close()

    def close(self):
        """Close the client if the server created it. Errors are logged, not raised."""
        if self._client is None or not self._owns_client:
            return
        try:
            self._client.close()
            logger.info("MongoDB client closed.")
        except Exception as e:
            logger.warning("Error while disconnecting from MongoDB: %s", e)


def new_server(options, client=None):
    return Server(options, client=client)
