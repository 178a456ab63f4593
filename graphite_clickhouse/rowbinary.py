"""Encoder for the ClickHouse RowBinary format."""

from __future__ import annotations

import math
import struct
from datetime import date
from typing import BinaryIO, Iterable

NULL_UINT32 = 0xFFFFFFFF
_EPOCH = date(1970, 1, 1)


def date_to_uint16(value: date) -> int:
    """Days since the epoch for the calendar date of value."""
    day = date(value.year, value.month, value.day)
    return (day - _EPOCH).days & 0xFFFF


def _uvarint(n: int) -> bytes:
    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


class Encoder:
    """Writes RowBinary values to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def date(self, value: date) -> None:
        self.uint16(date_to_uint16(value))

    def uint8(self, value: int) -> None:
        self._stream.write(struct.pack("<B", value))

    def uint16(self, value: int) -> None:
        self._stream.write(struct.pack("<H", value))

    def uint32(self, value: int) -> None:
        self._stream.write(struct.pack("<I", value))

    def nullable_uint32(self, value: int) -> None:
        """Write a nullable UInt32; NULL_UINT32 stands for NULL."""
        if value == NULL_UINT32:
            self._stream.write(b"\x01")
            return
        self._stream.write(b"\x00")
        self.uint32(value)

    def uint64(self, value: int) -> None:
        self._stream.write(struct.pack("<Q", value))

    def float64(self, value: float) -> None:
        self._stream.write(struct.pack("<d", value))

    def nullable_float64(self, value: float) -> None:
        """Write a nullable Float64; NaN stands for NULL."""
        if math.isnan(value):
            self._stream.write(b"\x01")
            return
        self._stream.write(b"\x00")
        self.float64(value)

    def bytes(self, value: bytes) -> None:
        self._stream.write(_uvarint(len(value)))
        self._stream.write(value)

    def string(self, value: str) -> None:
        self.bytes(value.encode())

    def _list(self, values: Iterable, write) -> None:
        values = list(values)
        self._stream.write(_uvarint(len(values)))
        for value in values:
            write(value)

    def string_list(self, values: Iterable[str]) -> None:
        self._list(values, self.string)

    def uint32_list(self, values: Iterable[int]) -> None:
        self._list(values, self.uint32)

    def nullable_uint32_list(self, values: Iterable[int]) -> None:
        self._list(values, self.nullable_uint32)

    def float64_list(self, values: Iterable[float]) -> None:
        self._list(values, self.float64)

    def nullable_float64_list(self, values: Iterable[float]) -> None:
        self._list(values, self.nullable_float64)