import io
import math
import struct
from datetime import date, datetime, timedelta

import pytest

from graphite_clickhouse.rowbinary import NULL_UINT32, Encoder, date_to_uint16


def _encoder():
    buf = io.BytesIO()
    return buf, Encoder(buf)


def _read_uvarint(stream):
    result = 0
    shift = 0
    while True:
        byte = stream.read(1)[0]
        result |= (byte & 0x7F) << shift
        if byte < 0x80:
            return result
        shift += 7


def test_date_to_uint16_epoch_and_consecutive_days():
    assert date_to_uint16(date(1970, 1, 1)) == 0
    day = date(2022, 11, 11)
    assert date_to_uint16(day + timedelta(days=1)) - date_to_uint16(day) == 1


def test_date_to_uint16_ignores_time_of_day():
    assert date_to_uint16(datetime(2022, 11, 11, 23, 59, 59)) == date_to_uint16(date(2022, 11, 11))


def test_date_writes_uint16():
    buf, enc = _encoder()
    day = date(2021, 8, 13)
    enc.date(day)
    assert struct.unpack("<H", buf.getvalue()) == (date_to_uint16(day),)


@pytest.mark.parametrize(
    "method, fmt, value",
    [
        ("uint8", "<B", 200),
        ("uint16", "<H", 65000),
        ("uint32", "<I", 4000000000),
        ("uint64", "<Q", 2**63 + 5),
        ("float64", "<d", 1.25),
    ],
)
def test_fixed_width_round_trip(method, fmt, value):
    buf, enc = _encoder()
    getattr(enc, method)(value)
    assert struct.unpack(fmt, buf.getvalue()) == (value,)


def test_nullable_uint32():
    buf, enc = _encoder()
    enc.nullable_uint32(NULL_UINT32)
    assert buf.getvalue() == b"\x01"
    buf, enc = _encoder()
    enc.nullable_uint32(7)
    data = buf.getvalue()
    assert data[:1] == b"\x00"
    assert struct.unpack("<I", data[1:]) == (7,)


def test_nullable_float64():
    buf, enc = _encoder()
    enc.nullable_float64(math.nan)
    assert buf.getvalue() == b"\x01"
    buf, enc = _encoder()
    enc.nullable_float64(2.5)
    data = buf.getvalue()
    assert data[:1] == b"\x00"
    assert struct.unpack("<d", data[1:]) == (2.5,)


@pytest.mark.parametrize("length", [0, 1, 127, 128, 300, 70000])
def test_string_round_trip(length):
    text = "a" * length
    buf, enc = _encoder()
    enc.string(text)
    buf.seek(0)
    assert _read_uvarint(buf) == length
    assert buf.read().decode() == text


def test_string_list_round_trip():
    values = ["a", "bc", "", "metric.name"]
    buf, enc = _encoder()
    enc.string_list(values)
    buf.seek(0)
    count = _read_uvarint(buf)
    got = [buf.read(_read_uvarint(buf)).decode() for _ in range(count)]
    assert got == values
    assert buf.read() == b""


def test_uint32_list_round_trip():
    values = [1, 2, 3000000000]
    buf, enc = _encoder()
    enc.uint32_list(values)
    buf.seek(0)
    count = _read_uvarint(buf)
    assert list(struct.unpack(f"<{count}I", buf.read())) == values


def test_float64_list_round_trip():
    values = [0.5, -1.0, 1e10]
    buf, enc = _encoder()
    enc.float64_list(values)
    buf.seek(0)
    count = _read_uvarint(buf)
    assert list(struct.unpack(f"<{count}d", buf.read())) == values


def test_nullable_uint32_list_round_trip():
    values = [5, NULL_UINT32, 9]
    buf, enc = _encoder()
    enc.nullable_uint32_list(values)
    buf.seek(0)
    count = _read_uvarint(buf)
    got = []
    for _ in range(count):
        if buf.read(1) == b"\x01":
            got.append(NULL_UINT32)
        else:
            got.append(struct.unpack("<I", buf.read(4))[0])
    assert got == values


def test_nullable_float64_list_round_trip():
    values = [1.5, math.nan, -2.0]
    buf, enc = _encoder()
    enc.nullable_float64_list(values)
    buf.seek(0)
    count = _read_uvarint(buf)
    got = []
    for _ in range(count):
        if buf.read(1) == b"\x01":
            got.append(None)
        else:
            got.append(struct.unpack("<d", buf.read(8))[0])
    assert got == [1.5, None, -2.0]