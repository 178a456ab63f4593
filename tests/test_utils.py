from datetime import timedelta

import pytest

from graphite_clickhouse.utils import timestamp_truncate


@pytest.mark.parametrize(
    "ts, duration, want",
    [
        (1628876563, timedelta(seconds=2), 1628876562),
        (1628876563, timedelta(seconds=10), 1628876560),
        (1628876563, timedelta(minutes=1), 1628876520),
        (1628876563, timedelta(hours=1), 1628874000),
        (1628876563, timedelta(hours=24), 1628812800),
    ],
)
def test_timestamp_truncate(ts, duration, want):
    assert timestamp_truncate(ts, duration) == want


def test_timestamp_truncate_zero_duration_keeps_value():
    assert timestamp_truncate(1628876563, timedelta(0)) == 1628876563