"""Streaming of the metric index as a JSON list of leaf paths."""

from __future__ import annotations

from typing import BinaryIO, Iterator


class Index:
    """Reads one path per line and writes the leaf paths as a JSON array."""

    def __init__(self, rows: BinaryIO) -> None:
        self._rows = rows

    def _leaves(self) -> Iterator[bytes]:
        for line in self._rows:
            line = line.rstrip(b"\n")
            if line.endswith(b"\r"):
                line = line[:-1]
            if not line or line.endswith(b"."):
                continue
            yield line

    def write_json(self, out: BinaryIO) -> None:
        """Write the leaf paths to out as a JSON array of strings."""
        out.write(b"[")
        for idx, path in enumerate(self._leaves()):
            out.write((b"," if idx else b"") + b'"' + path + b'"')
        out.write(b"]")

    def close(self) -> None:
        """Close the underlying rows stream."""
        self._rows.close()

    def __enter__(self) -> Index:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()