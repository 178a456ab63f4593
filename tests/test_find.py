import pickle
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from graphite_clickhouse.client.find import FindMatch, metrics_find
from graphite_clickhouse.client.formats import FormatType, HttpError, UnsupportedFormatError

GLOB_MATCH = b"\x0a\x03a.b\x10\x01"
GLOB_RESPONSE = b"\x0a\x03a.*\x12" + bytes([len(GLOB_MATCH)]) + GLOB_MATCH
MULTI_GLOB_RESPONSE = b"\x0a" + bytes([len(GLOB_RESPONSE)]) + GLOB_RESPONSE


@pytest.fixture
def server():
    state = {"status": 200, "body": b"", "requests": []}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            state["requests"].append((self.path, body))
            self.send_response(state["status"])
            self.send_header("Content-Length", str(len(state["body"])))
            self.send_header("X-Test", "yes")
            self.end_headers()
            self.wfile.write(state["body"])

        def log_message(self, *args):
            pass

    srv = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}", state
    srv.shutdown()
    srv.server_close()


def test_find_pb_v3_default(server):
    address, state = server
    state["body"] = MULTI_GLOB_RESPONSE
    params, globs, headers = metrics_find(address, FormatType.DEFAULT, "a.*", 100, 200, timeout=5)
    assert params == "/metrics/find/?format=carbonapi_v3_pb, from=100, until=200, query a.*"
    assert globs == [FindMatch(path="a.b", is_leaf=True)]
    assert headers["X-Test"] == "yes"
    path, body = state["requests"][0]
    assert path == "/metrics/find/?format=carbonapi_v3_pb"
    assert body == b"\x0a\x03a.*\x10\x64\x18\xc8\x01"


def test_find_protobuf(server):
    address, state = server
    state["body"] = GLOB_RESPONSE
    _, globs, _ = metrics_find(address, FormatType.PROTOBUF, "a.*", 100, 200, timeout=5)
    assert globs == [FindMatch(path="a.b", is_leaf=True)]
    path, body = state["requests"][0]
    split = urlsplit(path)
    assert split.path == "/metrics/find/"
    assert parse_qs(split.query) == {
        "format": ["protobuf"],
        "query": ["a.*"],
        "from": ["100"],
        "until": ["200"],
    }
    assert body == b""


def test_find_pickle_omits_zero_times(server):
    address, state = server
    state["body"] = pickle.dumps(
        [{"metric_path": "a.b", "isLeaf": True}, {"metric_path": "a.c", "isLeaf": False}],
        protocol=2,
    )
    _, globs, _ = metrics_find(address, FormatType.PICKLE, "a.*", 0, 0, timeout=5)
    assert globs == [FindMatch("a.b", True), FindMatch("a.c", False)]
    query = parse_qs(urlsplit(state["requests"][0][0]).query)
    assert "from" not in query and "until" not in query
    assert query["format"] == ["pickle"]


def test_find_not_found(server):
    address, state = server
    state["status"] = 404
    _, globs, headers = metrics_find(address, FormatType.PB_V3, "a.*", 1, 2, timeout=5)
    assert globs == []
    assert headers["X-Test"] == "yes"


def test_find_server_error(server):
    address, state = server
    state["status"] = 500
    state["body"] = b"boom"
    with pytest.raises(HttpError) as info:
        metrics_find(address, FormatType.PB_V3, "a.*", 1, 2, timeout=5)
    assert info.value.status_code == 500
    assert str(info.value) == "500: boom"


@pytest.mark.parametrize("fmt", [FormatType.JSON, FormatType.PB_V2])
def test_find_unsupported_format(server, fmt):
    address, state = server
    with pytest.raises(UnsupportedFormatError):
        metrics_find(address, fmt, "a.*", 1, 2, timeout=5)
    assert state["requests"] == []


def test_find_malformed_protobuf(server):
    address, state = server
    state["body"] = b"\x0a\x10a"
    with pytest.raises(ValueError):
        metrics_find(address, FormatType.PB_V3, "a.*", 1, 2, timeout=5)


def test_find_pickle_rejects_globals(server):
    address, state = server
    state["body"] = pickle.dumps([FindMatch("a", True)])
    with pytest.raises(pickle.UnpicklingError):
        metrics_find(address, FormatType.PICKLE, "a.*", 1, 2, timeout=5)