"""Client of the Graphite /metrics/find/ request."""

from __future__ import annotations

import io
import pickle
import urllib.error
import urllib.request
from dataclasses import dataclass
from email.message import Message
from typing import Iterator
from urllib.parse import urlencode

from graphite_clickhouse.client.formats import FormatType, HttpError, UnsupportedFormatError

_UINT64 = (1 << 64) - 1


@dataclass
class FindMatch:
    """One path found by a glob query."""

    path: str
    is_leaf: bool


def _varint(n: int) -> bytes:
    n &= _UINT64
    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("protobuf: truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if byte < 0x80:
            return result, pos
        shift += 7
        if shift >= 64:
            raise ValueError("protobuf: varint overflow")


def _take(data: bytes, pos: int, size: int) -> tuple[bytes, int]:
    end = pos + size
    if end > len(data):
        raise ValueError("protobuf: unexpected end of data")
    return data[pos:end], end


def _fields(data: bytes) -> Iterator[tuple[int, int, int | bytes]]:
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        number, wire_type = key >> 3, key & 7
        if number == 0:
            raise ValueError("protobuf: invalid field number 0")
        if wire_type == 0:
            value, pos = _read_varint(data, pos)
        elif wire_type == 1:
            value, pos = _take(data, pos, 8)
        elif wire_type == 2:
            length, pos = _read_varint(data, pos)
            value, pos = _take(data, pos, length)
        elif wire_type == 5:
            value, pos = _take(data, pos, 4)
        else:
            raise ValueError(f"protobuf: unsupported wire type {wire_type}")
        yield number, wire_type, value


def _encode_multi_glob_request(metrics: list[str], start: int, stop: int) -> bytes:
    out = bytearray()
    for metric in metrics:
        raw = metric.encode()
        out += b"\x0a" + _varint(len(raw)) + raw
    if start:
        out += b"\x10" + _varint(start)
    if stop:
        out += b"\x18" + _varint(stop)
    return bytes(out)


def _decode_glob_match(data: bytes) -> FindMatch:
    path = ""
    is_leaf = False
    for number, wire_type, value in _fields(data):
        if number == 1 and wire_type == 2:
            path = value.decode()
        elif number == 2 and wire_type == 0:
            is_leaf = bool(value)
    return FindMatch(path=path, is_leaf=is_leaf)


def _decode_glob_response(data: bytes) -> list[FindMatch]:
    return [
        _decode_glob_match(value)
        for number, wire_type, value in _fields(data)
        if number == 2 and wire_type == 2
    ]


def _decode_multi_glob_response(data: bytes) -> list[FindMatch]:
    matches: list[FindMatch] = []
    for number, wire_type, value in _fields(data):
        if number == 1 and wire_type == 2:
            matches.extend(_decode_glob_response(value))
    return matches


class _RestrictedUnpickler(pickle.Unpickler):
    def find_class(self, module: str, name: str):
        raise pickle.UnpicklingError(f"global {module}.{name} is forbidden")


def _decode_pickle(data: bytes) -> list[FindMatch]:
    decoded = _RestrictedUnpickler(io.BytesIO(data)).load()
    if not isinstance(decoded, list):
        raise ValueError("pickle: response is not a list")
    matches = []
    for item in decoded:
        if not isinstance(item, dict):
            raise ValueError("pickle: match is not a dict")
        path = item.get("metric_path")
        is_leaf = item.get("isLeaf")
        if not isinstance(path, str) or not isinstance(is_leaf, bool):
            raise ValueError("pickle: malformed match")
        matches.append(FindMatch(path=path, is_leaf=is_leaf))
    return matches


def _do_get(url: str, body: bytes | None, timeout: float | None) -> tuple[int, Message, bytes]:
    request = urllib.request.Request(url, data=body, method="GET")
    kwargs = {} if timeout is None else {"timeout": timeout}
    try:
        with urllib.request.urlopen(request, **kwargs) as resp:
            return resp.status, resp.headers, resp.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.headers, exc.read()


def metrics_find(
    address: str,
    format: FormatType = FormatType.DEFAULT,
    query: str = "",
    from_: int = 0,
    until: int = 0,
    timeout: float | None = None,
) -> tuple[str, list[FindMatch], Message]:
    """Run a find query; return a request description, the matches and the headers.

    Supported formats are carbonapi_v3_pb (the default), protobuf and pickle.
    A 404 answer gives no matches; any other non-200 answer raises HttpError.
    """
    fmt = FormatType(format)
    if fmt is FormatType.DEFAULT:
        fmt = FormatType.PB_V3
    r_url = "/metrics/find/"
    query_params = f"{r_url}?format={fmt}, from={from_}, until={until}, query {query}"

    params = {"format": str(fmt)}
    body = None
    if fmt is FormatType.PB_V3:
        body = _encode_multi_glob_request([query], from_, until)
    elif fmt in (FormatType.PROTOBUF, FormatType.PICKLE):
        params["query"] = query
        if from_ > 0:
            params["from"] = str(from_)
        if until > 0:
            params["until"] = str(until)
    else:
        raise UnsupportedFormatError()

    url = f"{address}{r_url}?{urlencode(sorted(params.items()))}"
    status, headers, payload = _do_get(url, body, timeout)
    if status == 404:
        return query_params, [], headers
    if status != 200:
        raise HttpError(status, payload.decode(errors="replace"))

    if fmt is FormatType.PROTOBUF:
        globs = _decode_glob_response(payload)
    elif fmt is FormatType.PB_V3:
        globs = _decode_multi_glob_response(payload)
    else:
        globs = _decode_pickle(payload)
    return query_params, globs, headers