"""Client of the Graphite /render/ request and decoding of its responses."""

from __future__ import annotations

import io
import json
import math
import struct
from dataclasses import dataclass, field
from datetime import timedelta
from email.message import Message
from typing import Any, Iterable, Sequence
from urllib.parse import urlencode

from graphite_clickhouse.client.find import (
    _RestrictedUnpickler,
    _do_get,
    _fields,
    _read_varint,
    _varint,
)
from graphite_clickhouse.client.formats import (
    ClientError,
    FormatType,
    HttpError,
    UnsupportedFormatError,
)
from graphite_clickhouse.timeparse import timestamp_truncate


class InvalidFromError(ClientError):
    """The start of the requested range is not positive."""

    def __init__(self, message: str = "invalid from") -> None:
        super().__init__(message)


class InvalidUntilError(ClientError):
    """The end of the requested range is not positive."""

    def __init__(self, message: str = "invalid until") -> None:
        super().__init__(message)


@dataclass
class Metric:
    """One rendered series."""

    name: str = ""
    path_expression: str = ""
    consolidation_func: str = ""
    start_time: int = 0
    stop_time: int = 0
    step_time: int = 0
    x_files_factor: float = 0.0
    high_precision_timestamps: bool = False
    values: list[float] = field(default_factory=list)
    applied_functions: list[str] = field(default_factory=list)
    request_start_time: int = 0
    request_stop_time: int = 0


def _int64(value: int) -> int:
    value &= (1 << 64) - 1
    return value - (1 << 64) if value >= 1 << 63 else value


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def _doubles(wire_type: int, value: Any) -> list[float]:
    if wire_type == 1:
        return [struct.unpack("<d", value)[0]]
    if wire_type == 2:
        if len(value) % 8:
            raise ValueError("protobuf: malformed packed doubles")
        return list(struct.unpack(f"<{len(value) // 8}d", value))
    raise ValueError(f"protobuf: unexpected wire type {wire_type} for doubles")


def _bools(wire_type: int, value: Any) -> list[bool]:
    if wire_type == 0:
        return [bool(value)]
    if wire_type == 2:
        result = []
        pos = 0
        while pos < len(value):
            item, pos = _read_varint(value, pos)
            result.append(bool(item))
        return result
    raise ValueError(f"protobuf: unexpected wire type {wire_type} for bools")


def _encode_fetch_request(target: str, start: int, stop: int) -> bytes:
    raw = target.encode()
    out = bytearray()
    if raw:
        out += b"\x0a" + _varint(len(raw)) + raw
    if start:
        out += b"\x10" + _varint(start)
    if stop:
        out += b"\x18" + _varint(stop)
    if raw:
        out += b"\x2a" + _varint(len(raw)) + raw
    return bytes(out)


def _encode_multi_fetch_request(targets: Iterable[str], start: int, stop: int) -> bytes:
    out = bytearray()
    for target in targets:
        msg = _encode_fetch_request(target, start, stop)
        out += b"\x0a" + _varint(len(msg)) + msg
    return bytes(out)


def _decode_v3_metric(data: bytes) -> Metric:
    m = Metric()
    request_stop = 0
    for number, wire_type, value in _fields(data):
        if number == 1 and wire_type == 2:
            m.name = value.decode()
        elif number == 2 and wire_type == 2:
            m.path_expression = value.decode()
        elif number == 3 and wire_type == 2:
            m.consolidation_func = value.decode()
        elif number == 4 and wire_type == 0:
            m.start_time = _int64(value)
        elif number == 5 and wire_type == 0:
            m.stop_time = _int64(value)
        elif number == 6 and wire_type == 0:
            m.step_time = _int64(value)
        elif number == 7 and wire_type == 5:
            m.x_files_factor = struct.unpack("<f", value)[0]
        elif number == 8 and wire_type == 0:
            m.high_precision_timestamps = bool(value)
        elif number == 9:
            m.values.extend(_doubles(wire_type, value))
        elif number == 10 and wire_type == 2:
            m.applied_functions.append(value.decode())
        elif number == 11 and wire_type == 0:
            m.request_start_time = _int64(value)
        elif number == 12 and wire_type == 0:
            request_stop = _int64(value)
    del request_stop
    # the request stop time is reported as the series stop time
    m.request_stop_time = m.stop_time
    return m


def _decode_v2_metric(data: bytes) -> Metric:
    m = Metric()
    absent: list[bool] = []
    for number, wire_type, value in _fields(data):
        if number == 1 and wire_type == 2:
            m.name = value.decode()
        elif number == 2 and wire_type == 0:
            m.start_time = _int32(value)
        elif number == 3 and wire_type == 0:
            m.stop_time = _int32(value)
        elif number == 4 and wire_type == 0:
            m.step_time = _int32(value)
        elif number == 5:
            m.values.extend(_doubles(wire_type, value))
        elif number == 6:
            absent.extend(_bools(wire_type, value))
    m.values = [
        math.nan if i < len(absent) and absent[i] else v for i, v in enumerate(m.values)
    ]
    return m


def _decode_multi(data: bytes, decode_metric) -> list[Metric]:
    return [
        decode_metric(value)
        for number, wire_type, value in _fields(data)
        if number == 1 and wire_type == 2
    ]


def _decode_pickle(data: bytes) -> list[Metric]:
    decoded = _RestrictedUnpickler(io.BytesIO(data)).load()
    if not isinstance(decoded, list):
        raise ValueError("pickle: response is not a list")
    metrics = []
    try:
        for item in decoded:
            values = [math.nan if v is None else float(v) for v in item["values"]]
            metrics.append(
                Metric(
                    name=str(item["name"]),
                    path_expression=str(item["pathExpression"]),
                    start_time=int(item["start"]),
                    stop_time=int(item["end"]),
                    step_time=int(item["step"]),
                    values=values,
                )
            )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"pickle: malformed metric: {exc}") from exc
    return metrics


def _decode_json(data: bytes) -> list[Metric]:
    decoded = json.loads(data)
    if not isinstance(decoded, dict):
        raise ValueError("json: response is not an object")
    metrics = []
    try:
        for item in decoded.get("metrics") or []:
            values = [math.nan if v is None else float(v) for v in item.get("values") or []]
            metrics.append(
                Metric(
                    name=item.get("name", ""),
                    path_expression=item.get("pathExpression", ""),
                    start_time=int(item.get("startTime", 0)),
                    stop_time=int(item.get("stopTime", 0)),
                    step_time=int(item.get("stepTime", 0)),
                    values=values,
                )
            )
    except (AttributeError, TypeError) as exc:
        raise ValueError(f"json: malformed metric: {exc}") from exc
    return metrics


def decode(data: bytes, format: FormatType) -> list[Metric]:
    """Decode a render response given in format into metrics."""
    fmt = FormatType(format)
    if fmt is FormatType.PB_V3:
        return _decode_multi(data, _decode_v3_metric)
    if fmt in (FormatType.PB_V2, FormatType.PROTOBUF):
        return _decode_multi(data, _decode_v2_metric)
    if fmt is FormatType.PICKLE:
        return _decode_pickle(data)
    if fmt is FormatType.JSON:
        return _decode_json(data)
    raise UnsupportedFormatError()


def render(
    address: str,
    format: FormatType = FormatType.DEFAULT,
    targets: Sequence[str] = (),
    from_: int = 0,
    until: int = 0,
    timeout: float | None = None,
) -> tuple[str, list[Metric], Message | None]:
    """Run a render request; return a request description, the metrics and the headers.

    A 404 answer gives no metrics; any other non-200 answer raises HttpError.
    """
    fmt = FormatType(format)
    if fmt is FormatType.DEFAULT:
        fmt = FormatType.PB_V3
    r_url = "/render/"
    targets = list(targets)
    query_params = (
        f"{r_url}?format={fmt}, from={from_}, until={until}, targets [{','.join(targets)}]"
    )
    if not targets:
        return query_params, [], None
    if from_ <= 0:
        raise InvalidFromError()
    if until <= 0:
        raise InvalidUntilError()

    body = None
    if fmt is FormatType.PB_V3:
        params: list[tuple[str, str]] = [("format", str(fmt))]
        body = _encode_multi_fetch_request(targets, from_, until)
    elif fmt in (FormatType.PB_V2, FormatType.PROTOBUF, FormatType.PICKLE, FormatType.JSON):
        params = [("format", str(fmt)), ("from", str(from_))]
        params += [("target", t) for t in targets]
        params.append(("until", str(until)))
    else:
        raise UnsupportedFormatError()

    url = f"{address}{r_url}?{urlencode(params)}"
    status, headers, payload = _do_get(url, body, timeout)
    if status == 404:
        return query_params, [], headers
    if status != 200:
        raise HttpError(status, payload.decode(errors="replace"))
    return query_params, decode(payload, fmt), headers


def metrics_timestamp_truncate(metrics: Iterable[Metric], precision: timedelta) -> None:
    """Round the time fields of every metric down to precision, in place."""
    if not precision:
        return
    for m in metrics:
        m.start_time = timestamp_truncate(m.start_time, precision)
        m.stop_time = timestamp_truncate(m.stop_time, precision)
        m.request_start_time = timestamp_truncate(m.request_start_time, precision)
        m.request_stop_time = timestamp_truncate(m.request_stop_time, precision)