from unittest.mock import patch

import httpx
import pytest

from bingchain.models import PluginRegistration
from bingchain.plugins import PluginInstaller, normalise_domain, parse_endpoint
from bingchain.prompts import PLUGIN_PROMPT

MANIFEST = {
    "schema_version": "v1",
    "name_for_model": "pets",
    "api": {"type": "openapi", "url": "/openapi.yaml"},
}

OPENAPI = """\
openapi: 3.0.0
info:
  title: Pet Store
  version: "1.0"
servers:
  - url: https://api.pets.example/v1
paths:
  /pets:
    get:
      operationId: listPets
"""


def plugin_host(request):
    if request.url.host == "pets.example":
        if request.url.path == "/.well-known/ai-plugin.json":
            return httpx.Response(200, json=MANIFEST)
        if request.url.path == "/openapi.yaml":
            return httpx.Response(200, text=OPENAPI)
    if request.url.host == "api.pets.example":
        if request.url.path == "/v1/pets":
            return httpx.Response(200, json=[{"name": "Rex", "tag": "dog"}])
        if request.url.path == "/v1/feed":
            return httpx.Response(
                200, text="<pets><pet>Rex</pet></pets>", headers={"content-type": "application/xml"}
            )
    return httpx.Response(404)


# ---------------------------------------------------------------------------
# Install
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw, expected", [
    ("pets.example", "pets.example"),
    ("https://pets.example/", "pets.example"),
    ("the pets.example plugin", "pets.example"),
    ('"pets.example"', "pets.example"),
])
def test_normalise_domain(raw, expected):
    assert normalise_domain(raw) == expected

def test_install_sets_api_base(make_session):
    session = make_session(plugin_host)
    summary = session.registry.dispatch("install", "the pets.example plugin")
    assert summary.startswith(PLUGIN_PROMPT)
    assert "listPets" in summary
    assert session.api_base == "https://api.pets.example/v1"
    assert session.plugin.domain == "pets.example"

def test_missing_manifest_leaves_state_alone(make_session):
    session = make_session(plugin_host)
    previous = PluginRegistration(domain="old.example", api_base_url="https://old.example/api")
    session.install_plugin(previous)
    assert session.registry.dispatch("install", "nothing.example") == ""
    assert session.plugin == previous

def test_connection_error_returns_empty(make_session):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    session = make_session(refuse)
    assert session.registry.dispatch("install", "pets.example") == ""
    assert session.api_base == ""

def test_unparseable_description_returns_empty(make_session):
    def handler(request):
        if request.url.path.endswith("ai-plugin.json"):
            return httpx.Response(200, json=MANIFEST)
        return httpx.Response(200, text="openapi: [unclosed")

    session = make_session(handler)
    assert session.registry.dispatch("install", "pets.example") == ""

@pytest.mark.parametrize("manifest", [
    {"api": "openapi.yaml"},
    {"api": {"type": "openapi", "url": 42}},
    {"api": {"type": "openapi", "url": ["/openapi.yaml"]}},
    {"api": {"type": "openapi"}},
    {"api": None},
])
def test_malformed_manifest_returns_empty(make_session, manifest):
    session = make_session(lambda request: httpx.Response(200, json=manifest))
    assert session.registry.dispatch("install", "pets.example") == ""
    assert session.plugin is None

def test_non_string_server_url_is_not_registered(make_session):
    def handler(request):
        if request.url.path.endswith("ai-plugin.json"):
            return httpx.Response(200, json=MANIFEST)
        return httpx.Response(200, text="openapi: 3.0.0\nservers:\n  - url: 7\n")

    session = make_session(handler)
    assert PluginInstaller(session).install("pets.example").startswith(PLUGIN_PROMPT)
    assert session.plugin is None

def test_description_without_servers_is_not_registered(make_session):
    def handler(request):
        if request.url.path.endswith("ai-plugin.json"):
            return httpx.Response(200, json=MANIFEST)
        return httpx.Response(200, text="openapi: 3.0.0\npaths: {}\n")

    session = make_session(handler)
    summary = PluginInstaller(session).install("pets.example")
    assert summary.startswith(PLUGIN_PROMPT)
    assert session.plugin is None

def test_second_install_replaces_first(make_session):
    def handler(request):
        if request.url.host == "other.example":
            if request.url.path.endswith("ai-plugin.json"):
                return httpx.Response(200, json=MANIFEST)
            return httpx.Response(200, text=OPENAPI.replace("api.pets.example", "api.other.example"))
        return plugin_host(request)

    session = make_session(handler)
    installer = PluginInstaller(session)
    installer.install("pets.example")
    installer.install("other.example")
    assert session.api_base == "https://api.other.example/v1"


# ---------------------------------------------------------------------------
# apicall
# ---------------------------------------------------------------------------

def test_parse_endpoint():
    method, path, headers = parse_endpoint('get:/pets/1#{"x-trace": 7}')
    assert method == "GET"
    assert path == "/pets/1"
    assert headers == {"x-trace": "7"}

def test_parse_endpoint_requires_method():
    with pytest.raises(ValueError):
        parse_endpoint("/pets")

@patch("bingchain.plugins.display")
def test_parse_endpoint_bad_headers(mock_display):
    assert parse_endpoint("GET:/pets#{not json")[2] == {}
    mock_display.warning.assert_called_once()

def test_apicall_resolves_relative_path(make_session):
    seen = {}

    def handler(request):
        seen["accept"] = request.headers.get("accept")
        return plugin_host(request)

    session = make_session(handler)
    session.registry.dispatch("install", "pets.example")
    result = session.registry.dispatch("apicall", "GET:/pets")
    assert "name: Rex" in result
    assert "tag: dog" in result
    assert seen["accept"] == "application/json"

def test_apicall_absolute_url_and_xml(make_session):
    session = make_session(plugin_host)
    result = session.registry.dispatch("apicall", "GET:https://api.pets.example/v1/feed")
    assert result == "<pets><pet>Rex</pet></pets>"

def test_apicall_error_status(make_session):
    session = make_session(plugin_host)
    assert session.registry.dispatch("apicall", "GET:https://api.pets.example/v1/cats") == "404 - Not Found"

def test_apicall_bad_input(session):
    assert session.registry.dispatch("apicall", "/pets").startswith("Input should be METHOD:url")
