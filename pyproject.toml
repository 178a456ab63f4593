[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "graphite-clickhouse"
version = "0.1.0"
description = "Building blocks for a Graphite backend that stores metrics in ClickHouse"
requires-python = ">=3.10"
dependencies = []
keywords = ["graphite", "clickhouse", "metrics", "rowbinary", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["graphite_clickhouse"]

[tool.pytest.ini_options]
addopts = "-ra"
