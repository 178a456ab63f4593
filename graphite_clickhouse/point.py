"""Metric data points and helpers that clean, deduplicate, group and fill them."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from operator import attrgetter
from typing import Iterable, Iterator, Mapping, Sequence

_UINT32 = 0xFFFFFFFF


class PointError(Exception):
    """Base error for point handling."""


class WrongMetricIDError(PointError):
    """A point carries a metric ID that is wrong somehow."""


class PointsUnsortedError(PointError):
    """Points are not sorted by time."""


@dataclass
class Point:
    """One value of a metric at a moment in time."""

    metric_id: int = 0
    value: float = 0.0
    time: int = 0
    # keep the max one if metric and time are equal on two points
    timestamp: int = 0


def clean_up(points: Iterable[Point]) -> list[Point]:
    """Drop points with an empty metric ID or a NaN value."""
    return [p for p in points if p.metric_id != 0 and not math.isnan(p.value)]


def uniq(points: Iterable[Point]) -> list[Point]:
    """Merge points with equal metric and time, keeping the latest timestamp."""
    result: list[Point] = []
    for p in points:
        if result and result[-1].metric_id == p.metric_id and result[-1].time == p.time:
            if p.timestamp > result[-1].timestamp:
                result[-1] = p
            continue
        result.append(p)
    return clean_up(result)


def fill_nulls(
    points: Sequence[Point], from_: int, until: int, step: int
) -> tuple[int, int, int, Iterator[float]]:
    """Align the sorted points of one metric to a step grid.

    Returns start, stop and count of the grid and an iterator yielding the
    value for each slot, NaN where a slot has no point.  The iterator raises
    WrongMetricIDError or PointsUnsortedError on bad input.
    """
    start = from_ - from_ % step
    if start < from_:
        start += step
    start &= _UINT32
    stop = (until - until % step + step) & _UINT32
    count = ((stop - start) & _UINT32) // step
    metric_id = points[0].metric_id if points else 0
    return start, stop, count, _fill(list(points), start, stop, step, metric_id)


def _fill(
    points: list[Point], start: int, stop: int, step: int, metric_id: int
) -> Iterator[float]:
    last = (start - step) & _UINT32
    if stop <= last:
        return
    for p in points:
        if p.metric_id != metric_id:
            raise WrongMetricIDError(
                f"the point MetricID {p.metric_id} differs from other {metric_id}: "
                "the point MetricID is wrong"
            )
        if p.time < start:
            continue
        if p.time <= last:
            raise PointsUnsortedError(
                f"the time is less or equal to previous {p.time} < {last}: "
                "the points are unsorted"
            )
        if stop <= p.time:
            break
        while last + step < p.time:
            last += step
            yield math.nan
        last = p.time
        yield p.value
    while last + step < stop:
        last += step
        yield math.nan


class Points:
    """Points of many metrics with their names, steps and aggregations."""

    def __init__(self) -> None:
        self._list: list[Point] = []
        self._id_map: dict[str, int] = {}
        self._metrics: list[str] = []
        self._steps: list[int] = []
        self._aggs: list[str | None] = []

    @property
    def points(self) -> list[Point]:
        """The list of points."""
        return self._list

    def append_point(self, metric_id: int, value: float, time: int, version: int) -> None:
        """Append a point built from the given values."""
        self._list.append(Point(metric_id=metric_id, value=value, time=time, timestamp=version))

    def metric_id(self, metric_name: str) -> int:
        """Return the ID of a metric name, registering it when new."""
        found = self._id_map.get(metric_name, 0)
        if found == 0:
            self._metrics.append(metric_name)
            found = len(self._metrics)
            self._id_map[metric_name] = found
        return found

    def metric_id_bytes(self, metric_name: bytes) -> int:
        """Same as metric_id for a name given as bytes."""
        return self.metric_id(metric_name.decode())

    def metric_name(self, metric_id: int) -> str:
        """Return the name of a metric ID or an empty string when unknown."""
        if metric_id < 1 or len(self._metrics) < metric_id:
            return ""
        return self._metrics[metric_id - 1]

    def replace_list(self, points: list[Point]) -> None:
        """Replace the list of points."""
        self._list = points

    def get_step(self, metric_id: int) -> int:
        """Return the step of a metric ID."""
        if metric_id < 1 or len(self._steps) < metric_id:
            raise WrongMetricIDError(
                f"wrong id {metric_id} for given steps {len(self._steps)}: "
                "the point MetricID is wrong"
            )
        return self._steps[metric_id - 1]

    def set_steps(self, steps: Mapping[int, Iterable[str]]) -> None:
        """Set steps from a mapping of step to metric names."""
        if not steps:
            return
        self._steps = [0] * len(self._metrics)
        for step, names in steps.items():
            for name in names:
                found = self._id_map.get(name)
                if found:
                    self._steps[found - 1] = step

    def get_aggregation(self, metric_id: int) -> str:
        """Return the aggregation function name of a metric ID."""
        if metric_id < 1 or len(self._aggs) < metric_id:
            raise WrongMetricIDError(
                f"wrong id {metric_id} for given functions {len(self._aggs)}: "
                "the point MetricID is wrong"
            )
        agg = self._aggs[metric_id - 1]
        if agg is None:
            raise WrongMetricIDError(f"no function for id {metric_id}: the point MetricID is wrong")
        return agg

    def set_aggregations(self, functions: Mapping[str, Iterable[str]]) -> None:
        """Set aggregations from a mapping of function to metric names."""
        self._aggs = [None] * len(self._metrics)
        for function, names in functions.items():
            for name in names:
                found = self._id_map.get(name)
                if found:
                    self._aggs[found - 1] = function

    def __len__(self) -> int:
        return len(self._list)

    def sort(self) -> None:
        """Sort points by metric ID and time."""
        self._list.sort(key=attrgetter("metric_id", "time"))

    def uniq(self) -> None:
        """Deduplicate and clean up the points."""
        self._list = uniq(self._list)

    def group_by_metric(self) -> Iterator[list[Point]]:
        """Yield the points of each metric in turn; the list must be sorted."""
        for _, group in itertools.groupby(self._list, key=attrgetter("metric_id")):
            yield list(group)