"""Building blocks for a Graphite backend that stores metrics in ClickHouse."""

__version__ = "0.1.0"