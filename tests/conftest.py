import mongomock
import pytest

from mongo_api import Server, ServerOptions

USERS = [
    {"name": "Jon", "status": "active", "x": 1},
    {"name": "Ann", "status": "inactive", "x": 2},
    {"name": "Bob", "status": "active", "x": 1},
    {"name": "Eve", "status": "active", "x": 3},
    {"name": "Max", "status": "inactive", "x": 1},
]


@pytest.fixture
def mongo_client():
    client = mongomock.MongoClient()
    client["app"]["users"].insert_many([dict(user) for user in USERS])
    client["app"]["orders"].insert_one({"item": "book", "qty": 2})
    client["reports"]["daily"].insert_one({"day": 1})
    return client


@pytest.fixture
def make_server():
    """Build a Server around the given client; keyword args call the matching option setters."""

    def _make(client, **settings):
        opts = ServerOptions()
        for key, value in settings.items():
            getattr(opts, f"set_{key}")(value)
        return Server(opts, client=client)

    return _make


@pytest.fixture
def make_client(make_server):
    def _make(client, **settings):
        return make_server(client, **settings).create_app().test_client()

    return _make


@pytest.fixture
def http(make_client, mongo_client):
    return make_client(mongo_client)
