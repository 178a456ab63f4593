"""Client of the Graphite tag autocompletion requests."""

from __future__ import annotations

import json
from email.message import Message
from urllib.parse import quote_plus

from graphite_clickhouse.client.find import _do_get
from graphite_clickhouse.client.formats import (
    ClientError,
    FormatType,
    HttpError,
    InvalidQueryError,
    UnsupportedFormatError,
)


def _go_quote_list(items: list[str]) -> str:
    return "[" + " ".join(json.dumps(item, ensure_ascii=False) for item in items) + "]"


def _check_format(route: str, format: FormatType, query: str, limit: int, from_: int, until: int) -> FormatType:
    fmt = FormatType(format)
    if fmt is FormatType.DEFAULT:
        fmt = FormatType.JSON
    if fmt is not FormatType.JSON:
        raise UnsupportedFormatError(
            f"unsupported format: {route}?format={fmt}, from={from_}, until={until}, "
            f"limits={limit}, query {query}"
        )
    return fmt


def _build_query(
    fmt: FormatType,
    named: list[tuple[str, str]],
    exprs: list[str],
    from_: int,
    until: int,
    limit: int,
) -> tuple[list[str], str]:
    pairs = [("format", str(fmt))]
    pairs += [(key, value) for key, value in named if value]
    pairs += [("expr", expr) for expr in exprs]
    if from_ > 0:
        pairs.append(("from", str(from_)))
    if until > 0:
        pairs.append(("until", str(until)))
    if limit > 0:
        pairs.append(("limit", str(limit)))
    shown = [f"{key}={value}" for key, value in pairs]
    raw = "&".join(f"{key}={quote_plus(value, safe='')}" for key, value in pairs)
    return shown, raw


def _decode_values(payload: bytes) -> list[str]:
    try:
        values = json.loads(payload)
        if values is not None and (
            not isinstance(values, list) or not all(isinstance(v, str) for v in values)
        ):
            raise ValueError("response is not a list of strings")
    except ValueError as exc:
        raise ClientError(f"{exc}: {payload.decode(errors='replace')}") from exc
    return values or []


def tags_names(
    address: str,
    format: FormatType = FormatType.DEFAULT,
    query: str = "",
    limit: int = 0,
    from_: int = 0,
    until: int = 0,
    timeout: float | None = None,
) -> tuple[str, list[str], Message]:
    """Autocomplete tag names for a query like ``[tagPrefix];tag1=value1;tag2=~value*``.

    Only the json format is supported. A 404 answer gives no names.
    """
    route = "/tags/autoComplete/tags"
    fmt = _check_format(route, format, query, limit, from_, until)

    tag_prefix = ""
    exprs: list[str] = []
    if query not in ("", "<>"):
        for i, arg in enumerate(query.split(";")):
            delim = arg.find("=")
            if i == 0 and delim == -1:
                tag_prefix = arg
            elif delim <= 0:
                raise InvalidQueryError("invalid expr: " + arg)
            else:
                exprs.append(arg)

    shown, raw = _build_query(fmt, [("tagPrefix", tag_prefix)], exprs, from_, until, limit)
    query_params = f"{route} {_go_quote_list(shown)}"

    status, headers, payload = _do_get(f"{address}{route}?{raw}", None, timeout)
    if status == 404:
        return raw, [], headers
    if status != 200:
        raise HttpError(status, payload.decode(errors="replace"))
    return query_params, _decode_values(payload), headers


def tags_values(
    address: str,
    format: FormatType = FormatType.DEFAULT,
    query: str = "",
    limit: int = 0,
    from_: int = 0,
    until: int = 0,
    timeout: float | None = None,
) -> tuple[str, list[str], Message]:
    """Autocomplete tag values for a query like ``searchTag[=valuePrefix];tag1=value1``.

    Only the json format is supported. A 404 answer gives no values.
    """
    route = "/tags/autoComplete/values"
    fmt = _check_format(route, format, query, limit, from_, until)

    tag = ""
    value_prefix = ""
    exprs: list[str] = []
    if query not in ("", "<>"):
        args = query.split(";")
        if len(args) < 2:
            raise InvalidQueryError()
        vals = args[0].split("=")
        tag = vals[0]
        if len(vals) > 2:
            raise InvalidQueryError("invalid tag: " + args[0])
        if len(vals) == 2:
            value_prefix = vals[1]
        for expr in args[1:]:
            if expr.find("=") <= 0:
                raise InvalidQueryError("invalid expr: " + expr)
            exprs.append(expr)

    shown, raw = _build_query(
        fmt, [("tag", tag), ("valuePrefix", value_prefix)], exprs, from_, until, limit
    )
    query_params = f"{route} {_go_quote_list(shown)}"

    status, headers, payload = _do_get(f"{address}{route}?{raw}", None, timeout)
    if status == 404:
        return query_params, [], headers
    if status != 200:
        raise HttpError(status, payload.decode(errors="replace"))
    return query_params, _decode_values(payload), headers