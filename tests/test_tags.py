import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qsl, urlsplit

import pytest

from graphite_clickhouse.client.formats import (
    ClientError,
    FormatType,
    HttpError,
    InvalidQueryError,
    UnsupportedFormatError,
)
from graphite_clickhouse.client.tags import tags_names, tags_values


class _Server:
    def __init__(self):
        self.paths = []
        self.status = 200
        self.body = b"[]"
        outer = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                outer.paths.append(self.path)
                self.send_response(outer.status)
                self.send_header("Content-Length", str(len(outer.body)))
                self.end_headers()
                self.wfile.write(outer.body)

            def log_message(self, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.address = f"http://127.0.0.1:{self.httpd.server_address[1]}"


@pytest.fixture
def server():
    srv = _Server()
    srv.thread.start()
    yield srv
    srv.httpd.shutdown()
    srv.httpd.server_close()


def test_tags_names_request_and_response(server):
    server.body = json.dumps(["name", "env"]).encode()
    params, values, _ = tags_names(server.address, FormatType.DEFAULT, "na;env=prod", 5, 10, 20)
    assert values == ["name", "env"]
    parts = urlsplit(server.paths[0])
    assert parts.path == "/tags/autoComplete/tags"
    assert parse_qsl(parts.query) == [
        ("format", "json"),
        ("tagPrefix", "na"),
        ("expr", "env=prod"),
        ("from", "10"),
        ("until", "20"),
        ("limit", "5"),
    ]
    assert params.startswith("/tags/autoComplete/tags [")
    assert '"expr=env=prod"' in params


def test_tags_names_plain_query_params(server):
    params, values, _ = tags_names(server.address, FormatType.JSON, "")
    assert values == []
    assert params == '/tags/autoComplete/tags ["format=json"]'


def test_tags_names_invalid_expr():
    with pytest.raises(InvalidQueryError):
        tags_names("http://127.0.0.1:1", FormatType.JSON, "a;=b")


def test_tags_names_unsupported_format():
    with pytest.raises(UnsupportedFormatError):
        tags_names("http://127.0.0.1:1", FormatType.PICKLE, "a")


def test_tags_names_not_found_returns_raw_query(server):
    server.status = 404
    server.body = b""
    params, values, _ = tags_names(server.address, FormatType.JSON, "pre")
    assert values == []
    assert parse_qsl(params) == [("format", "json"), ("tagPrefix", "pre")]


def test_tags_names_bad_json(server):
    server.body = b"not json"
    with pytest.raises(ClientError) as info:
        tags_names(server.address, FormatType.JSON, "")
    assert str(info.value).endswith(": not json")


def test_tags_values_request_and_response(server):
    server.body = json.dumps(["prod", "test"]).encode()
    _, values, _ = tags_values(server.address, FormatType.JSON, "env=pr;name=cpu", 0, 0, 30)
    assert values == ["prod", "test"]
    parts = urlsplit(server.paths[0])
    assert parts.path == "/tags/autoComplete/values"
    assert parse_qsl(parts.query) == [
        ("format", "json"),
        ("tag", "env"),
        ("valuePrefix", "pr"),
        ("expr", "name=cpu"),
        ("until", "30"),
    ]


def test_tags_values_needs_expression():
    with pytest.raises(InvalidQueryError):
        tags_values("http://127.0.0.1:1", FormatType.JSON, "env")


def test_tags_values_invalid_tag():
    with pytest.raises(InvalidQueryError) as info:
        tags_values("http://127.0.0.1:1", FormatType.JSON, "a=b=c;x=y")
    assert str(info.value) == "invalid tag: a=b=c"


def test_tags_values_invalid_expr():
    with pytest.raises(InvalidQueryError) as info:
        tags_values("http://127.0.0.1:1", FormatType.JSON, "env;novalue")
    assert str(info.value) == "invalid expr: novalue"


def test_tags_values_http_error(server):
    server.status = 500
    server.body = b"fail"
    with pytest.raises(HttpError) as info:
        tags_values(server.address, FormatType.JSON, "")
    assert info.value.status_code == 500
    assert info.value.message == "fail"