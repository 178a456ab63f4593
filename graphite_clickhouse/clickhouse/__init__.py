"""External-data tables sent along with ClickHouse queries."""