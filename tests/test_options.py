import pytest
from flask import Flask

from mongo_api import InvalidCustomRouteName, ServerOptions
from mongo_api.options import parse_address


def test_defaults():
    opts = ServerOptions()
    assert opts.address == ":8080"
    assert opts.custom_route_name == "/custom"
    assert opts.mongo_uri == "mongodb://localhost:27017"
    assert opts.mongo_client_options == {}
    assert opts.find_limit == 1000
    assert opts.find_max_limit == 0
    assert opts.default_db is None
    assert opts.query_timeout_ms == 0


@pytest.mark.parametrize("name, expected", [
    ("/custom", "/custom"),
    ("custom", "/custom"),
    ("/reports/", "/reports"),
    ("apix", "/apix"),
])
def test_set_custom_route_name_valid(name, expected):
    opts = ServerOptions()
    opts.set_custom_route_name(name)
    assert opts.custom_route_name == expected


@pytest.mark.parametrize("name", ["/", "/api", "api", "/api/", ""])
def test_set_custom_route_name_invalid(name):
    opts = ServerOptions()
    with pytest.raises(InvalidCustomRouteName):
        opts.set_custom_route_name(name)
    assert opts.custom_route_name == "/custom"


def test_invalid_custom_route_name_is_value_error():
    assert issubclass(InvalidCustomRouteName, ValueError)


@pytest.mark.parametrize("address, expected", [
    (":8080", ("0.0.0.0", 8080)),
    ("127.0.0.1:9000", ("127.0.0.1", 9000)),
    ("localhost:80", ("localhost", 80)),
])
def test_parse_address(address, expected):
    assert parse_address(address) == expected


@pytest.mark.parametrize("address", ["8080", "localhost:http", ""])
def test_parse_address_invalid(address):
    with pytest.raises(ValueError):
        parse_address(address)


def test_set_address():
    opts = ServerOptions()
    opts.set_address("127.0.0.1:5000")
    assert (opts.host, opts.port) == ("127.0.0.1", 5000)


def test_limit_validation():
    opts = ServerOptions()
    with pytest.raises(ValueError):
        opts.set_find_limit(0)
    with pytest.raises(ValueError):
        opts.set_find_max_limit(-1)
    with pytest.raises(ValueError):
        opts.set_query_timeout_ms(-5)
    opts.set_find_max_limit(0)
    assert opts.find_max_limit == 0


def test_empty_default_db_means_none():
    opts = ServerOptions()
    opts.set_default_db("")
    assert opts.default_db is None


def test_mongo_client_options():
    opts = ServerOptions()
    opts.set_mongo_client_options(serverSelectionTimeoutMS=5000, appname="grafana")
    assert opts.mongo_client_options == {"serverSelectionTimeoutMS": 5000, "appname": "grafana"}


def test_router_default_and_custom():
    opts = ServerOptions()
    default = opts.get_router()
    assert isinstance(default, Flask)
    assert opts.get_router() is default

    mine = Flask("mine")
    opts.set_router(mine)
    assert opts.get_router() is mine


def test_frozen_options_reject_changes():
    opts = ServerOptions()
    opts.freeze()
    assert opts.frozen
    with pytest.raises(RuntimeError):
        opts.set_find_limit(10)
    with pytest.raises(RuntimeError):
        opts.default_db = "app"


def test_from_env(monkeypatch):
    monkeypatch.setenv("MONGO_URI", "mongodb://db:27017")
    monkeypatch.setenv("MONGO_API_ADDRESS", "127.0.0.1:9090")
    monkeypatch.setenv("MONGO_API_DEFAULT_DB", "app")
    monkeypatch.setenv("MONGO_API_FIND_LIMIT", "50")
    monkeypatch.setenv("MONGO_API_FIND_MAX_LIMIT", "200")
    monkeypatch.setenv("MONGO_API_CUSTOM_ROUTE", "extra")
    monkeypatch.setenv("MONGO_API_QUERY_TIMEOUT_MS", "1500")

    opts = ServerOptions.from_env()
    assert opts.mongo_uri == "mongodb://db:27017"
    assert opts.address == "127.0.0.1:9090"
    assert opts.default_db == "app"
    assert opts.find_limit == 50
    assert opts.find_max_limit == 200
    assert opts.custom_route_name == "/extra"
    assert opts.query_timeout_ms == 1500


def test_from_env_defaults(monkeypatch):
    for name in (
        "MONGO_URI", "MONGO_API_ADDRESS", "MONGO_API_DEFAULT_DB", "MONGO_API_FIND_LIMIT",
        "MONGO_API_FIND_MAX_LIMIT", "MONGO_API_CUSTOM_ROUTE", "MONGO_API_QUERY_TIMEOUT_MS",
    ):
        monkeypatch.delenv(name, raising=False)

    opts = ServerOptions.from_env()
    assert opts.mongo_uri == "mongodb://localhost:27017"
    assert opts.address == ":8080"
    assert opts.default_db is None
    assert opts.find_limit == 1000


def test_from_env_bad_int(monkeypatch):
    monkeypatch.setenv("MONGO_API_FIND_LIMIT", "lots")
    with pytest.raises(ValueError, match="MONGO_API_FIND_LIMIT"):
        ServerOptions.from_env()


def test_from_env_bad_custom_route(monkeypatch):
    monkeypatch.setenv("MONGO_API_CUSTOM_ROUTE", "/api")
    with pytest.raises(InvalidCustomRouteName):
        ServerOptions.from_env()
