# graphite-clickhouse

Python building blocks for serving Graphite metrics stored in ClickHouse.
The package uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## What is inside

- `graphite_clickhouse.point`: `Point` and the `Points` container (metric
  name registry, steps, aggregation names, sorting, `group_by_metric`), with
  the functions `clean_up`, `uniq` and `fill_nulls`. Errors are raised as
  `WrongMetricIDError` and `PointsUnsortedError`, both subclasses of
  `PointError`.
- `graphite_clickhouse.timeparse`: `date_param_to_epoch` turns Graphite
  from/until parameters such as `now-1h`, `midnight-1day`, `noon 08/12/94`
  or `19940812` into Unix timestamps (0 when the parameter is invalid).
  `interval_string` parses intervals like `-1day`, `timezone` loads a zone
  by name (empty or `Local` is the system zone), and `timestamp_truncate` /
  `time_truncate` round times down.
- `graphite_clickhouse.date`: converts timestamps and datetimes into
  ClickHouse day strings (`YYYY-MM-DD`) in local time, UTC, or the
  minimum/maximum of both. `set_default`, `set_utc` and `set_both` choose
  the mode used by `from_timestamp_to_days_format`,
  `until_timestamp_to_days_format` and their datetime variants.
- `graphite_clickhouse.utils`: `timestamp_truncate` for a plain timestamp.
- `graphite_clickhouse.headers`: `get_headers` picks the named, non-empty
  headers from a mapping, matching names case-insensitively.
- `graphite_clickhouse.rowbinary`: `Encoder` writes ClickHouse RowBinary
  values (integers, floats, nullable values, strings, dates and lists) to a
  binary stream; `date_to_uint16` gives days since the epoch.
- `graphite_clickhouse.index`: `Index` reads one metric path per line and
  writes the leaf paths (lines not ending in `.`) as a JSON array.
- `graphite_clickhouse.clickhouse.external_data`: `Column`, `ExternalTable`
  and `ExternalData` build the multipart body for ClickHouse external
  (temporary) tables and can dump their data with a replay `curl` command
  for debugging.
- `graphite_clickhouse.client`: a client for a Graphite HTTP API.
  `formats` holds `FormatType`, `parse_format`, `format_types` and the
  client errors (`HttpError`, `UnsupportedFormatError`, ...). `find.metrics_find`
  calls `/metrics/find/` (carbonapi_v3_pb, protobuf or pickle),
  `render.render` calls `/render/` and `render.decode` decodes its answers
  (carbonapi_v3_pb, carbonapi_v2_pb/protobuf, pickle or json) into `Metric`
  objects. `tags.tags_names` and `tags.tags_values` call the
  `/tags/autoComplete/*` endpoints (json only).

## Examples

```python
from datetime import datetime, timezone
from graphite_clickhouse.timeparse import date_param_to_epoch

now = datetime(2024, 1, 1, tzinfo=timezone.utc)
print(date_param_to_epoch("-1h", timezone.utc, now))   # 1704063600
```

```python
from graphite_clickhouse.point import Point, fill_nulls

points = [Point(1, 1, 0), Point(1, 12, 2), Point(1, 2, 4), Point(1, 4, 8)]
start, stop, count, values = fill_nulls(points, 1, 13, 2)
print(start, stop, count, list(values))   # 2 14 6 [12, 2, nan, 4, nan, nan]
```

```python
import io
from graphite_clickhouse.index import Index

out = io.BytesIO()
with Index(io.BytesIO(b"a.b\nc.\n\na.c\n")) as index:
    index.write_json(out)
print(out.getvalue())   # b'["a.b","a.c"]'
```

## What this package does not do

It is a library, not a service: it provides no command, no HTTP server and
no request handlers. It does not run queries against ClickHouse (only the
external-data body is built here), has no rollup rules or aggregation of
points by retention, and no limiting of concurrent requests. The
`graphite_clickhouse.rollup` subpackage currently holds no modules.