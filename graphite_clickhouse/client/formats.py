"""Response formats of the Graphite API and the errors of its client."""

from __future__ import annotations

from enum import IntEnum


class FormatType(IntEnum):
    """A response format of the Graphite API."""

    DEFAULT = 0
    JSON = 1
    PROTOBUF = 2
    PB_V2 = 3  # alias for PROTOBUF
    PB_V3 = 4
    PICKLE = 5

    def __str__(self) -> str:
        return _FORMAT_STRINGS[self.value]


_FORMAT_STRINGS = ("default", "json", "protobuf", "carbonapi_v2_pb", "carbonapi_v3_pb", "pickle")

_PARSEABLE = {
    "json": FormatType.JSON,
    "protobuf": FormatType.PROTOBUF,
    "carbonapi_v2_pb": FormatType.PB_V2,
    "carbonapi_v3_pb": FormatType.PB_V3,
    "pickle": FormatType.PICKLE,
}


def format_types() -> list[str]:
    """Names of all formats, in order of their values."""
    return list(_FORMAT_STRINGS)


def parse_format(value: str) -> FormatType:
    """Return the format with the given name."""
    try:
        return _PARSEABLE[value]
    except KeyError:
        raise ValueError(f"invalid format type {value}") from None


class ClientError(Exception):
    """Base error of the Graphite API client."""


class UnsupportedFormatError(ClientError):
    """The request does not support the format."""

    def __init__(self, message: str = "unsupported format") -> None:
        super().__init__(message)


class EmptyQueryError(ClientError):
    """The query is missing."""

    def __init__(self, message: str = "missing query") -> None:
        super().__init__(message)


class InvalidQueryError(ClientError):
    """The query cannot be parsed."""

    def __init__(self, message: str = "invalid query") -> None:
        super().__init__(message)


class HttpError(ClientError):
    """The server answered with an unexpected status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(status_code, message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"