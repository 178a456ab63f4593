"""Temporary tables sent along with a ClickHouse query as multipart form data."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import MutableMapping
from urllib.parse import SplitResult, parse_qs, urlencode, urlsplit, urlunsplit

logger = logging.getLogger("graphite_clickhouse.external_data")


@dataclass
class Column:
    """A column name with its ClickHouse data type."""

    name: str
    type: str

    def __str__(self) -> str:
        return f"{self.name} {self.type}"


@dataclass
class ExternalTable:
    """A temporary table: name, structure, input format and raw data."""

    name: str
    columns: list[Column] = field(default_factory=list)
    format: str = ""
    data: bytes = b""


@dataclass
class _DebugSettings:
    directory: str
    perm: int


def _escape_quotes(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _redacted(parts: SplitResult) -> SplitResult:
    if parts.password is None:
        return parts
    userinfo, _, hostport = parts.netloc.rpartition("@")
    username = userinfo.partition(":")[0]
    return parts._replace(netloc=f"{username}:xxxxx@{hostport}")


def _write_file(filename: str, data: bytes, perm: int) -> None:
    fd = os.open(filename, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)


@dataclass
class ExternalData:
    """A set of temporary tables passed with one query."""

    tables: list[ExternalTable] = field(default_factory=list)
    _debug: _DebugSettings | None = field(default=None, init=False, repr=False, compare=False)

    def set_debug(self, debug_dir: str, perm: int) -> None:
        """Enable dumping of table data to debug_dir; needs both a directory and a mode."""
        if not debug_dir or not perm:
            self._debug = None
        else:
            self._debug = _DebugSettings(debug_dir, perm)

    def build_body(self, params: MutableMapping[str, list[str]]) -> tuple[bytes, str]:
        """Build the multipart body and its content type.

        The format and structure parameters of each table are set in params.
        """
        boundary = os.urandom(30).hex()
        parts = []
        for table in self.tables:
            name = _escape_quotes(table.name)
            head = (
                f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{name}"; filename="{name}"\r\n'
                "Content-Type: application/octet-stream\r\n\r\n"
            )
            parts.append(head.encode() + table.data)
            if table.format:
                params[f"{table.name}_format"] = [table.format]
            params[f"{table.name}_structure"] = [",".join(str(c) for c in table.columns)]

        body = b"\r\n".join(parts)
        if parts:
            body += b"\r\n"
        body += f"--{boundary}--\r\n".encode()
        return body, f"multipart/form-data; boundary={boundary}"

    def debug_dump(self, url: str, request_id: str, debug: bool) -> str | None:
        """Write table data to the debug directory and return a curl command replaying it.

        Nothing is done, and None returned, unless debugging is set and requested.
        """
        if self._debug is None or not debug:
            return None

        command = "curl "
        for table in self.tables:
            filename = os.path.join(
                self._debug.directory, f"ext-{table.name}:{request_id}.{table.format}"
            )
            try:
                _write_file(filename, table.data, self._debug.perm)
            except OSError as exc:
                # the command cannot be built without every table
                logger.warning("external-data: %s", exc)
                return None
            command += f"-F '{table.name}=@{filename};' "

        parts = urlsplit(url)
        params = parse_qs(parts.query, keep_blank_values=True)
        # a separate query id keeps the replay apart from the original query
        params["query_id"] = [f"{request_id}:debug"]
        parts = _redacted(parts)._replace(query=urlencode(sorted(params.items()), doseq=True))
        command += "'" + urlunsplit(parts) + "'"

        logger.info("external-data debug command: %s", command)
        return command