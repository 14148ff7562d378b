"""DuckDB schema definitions for feeds, points and pipeline runs."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class UniqueIndex:
    """Unique index enforcing a natural key."""

    name: str
    columns: Sequence[str]

    def create_ddl(self, table: str) -> str:
        return f"CREATE UNIQUE INDEX IF NOT EXISTS {self.name} ON {table} ({', '.join(self.columns)})"


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()
    unique_indexes: Sequence[UniqueIndex] = ()
    sequence: str | None = None

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            pk_cols = ", ".join(self.primary_key)
            column_defs.append(f"PRIMARY KEY ({pk_cols})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def statements(self) -> Iterable[str]:
        if self.sequence:
            yield f"CREATE SEQUENCE IF NOT EXISTS {self.sequence} START 1"
        yield self.create_ddl()
        for index in self.unique_indexes:
            yield index.create_ddl(self.name)

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table, its sequence and indexes if they do not exist."""

        for statement in self.statements():
            conn.execute(statement)


def _id_column(sequence: str) -> ColumnDef:
    return ColumnDef("id", "BIGINT", (f"DEFAULT nextval('{sequence}')", "PRIMARY KEY"))


_TIMESTAMPS = (
    ColumnDef("created_at", "TIMESTAMP", ("NOT NULL", "DEFAULT current_timestamp")),
    ColumnDef("updated_at", "TIMESTAMP", ("NOT NULL", "DEFAULT current_timestamp")),
)


TIME_SERIES_TABLE = TableSchema(
    name="time_series",
    sequence="time_series_id_seq",
    columns=(
        _id_column("time_series_id_seq"),
        ColumnDef("ticker", "VARCHAR", ("NOT NULL",)),
        ColumnDef("timeframe", "VARCHAR", ("NOT NULL",)),
        ColumnDef("source", "VARCHAR", ("NOT NULL",)),
        ColumnDef("source_id", "VARCHAR"),
        ColumnDef("kind", "VARCHAR", ("NOT NULL",)),
        ColumnDef("description", "VARCHAR"),
        ColumnDef("since", "DATE"),
        *_TIMESTAMPS,
    ),
    unique_indexes=(UniqueIndex("index_time_series_on_ticker", ("ticker",)),),
)

UNIVARIATES_TABLE = TableSchema(
    name="univariates",
    columns=(
        ColumnDef("timeframe", "VARCHAR", ("NOT NULL",)),
        ColumnDef("ticker", "VARCHAR", ("NOT NULL",)),
        ColumnDef("ts", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("main", "DOUBLE", ("NOT NULL",)),
        *_TIMESTAMPS,
    ),
    unique_indexes=(UniqueIndex("index_univariates_on_ticker_and_ts", ("ticker", "ts")),),
)

AGGREGATES_TABLE = TableSchema(
    name="aggregates",
    columns=(
        ColumnDef("timeframe", "VARCHAR", ("NOT NULL",)),
        ColumnDef("ticker", "VARCHAR", ("NOT NULL",)),
        ColumnDef("ts", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("open", "DOUBLE", ("NOT NULL",)),
        ColumnDef("high", "DOUBLE", ("NOT NULL",)),
        ColumnDef("low", "DOUBLE", ("NOT NULL",)),
        ColumnDef("close", "DOUBLE", ("NOT NULL",)),
        ColumnDef("aclose", "DOUBLE"),
        ColumnDef("volume", "DOUBLE", ("CHECK (volume IS NULL OR volume >= 0)",)),
        *_TIMESTAMPS,
    ),
    unique_indexes=(
        UniqueIndex("index_aggregates_on_timeframe_and_ticker_and_ts", ("timeframe", "ticker", "ts")),
    ),
)

PIPELINES_TABLE = TableSchema(
    name="pipelines",
    sequence="pipelines_id_seq",
    columns=(
        _id_column("pipelines_id_seq"),
        ColumnDef("time_series_id", "BIGINT", ("NOT NULL",)),
        ColumnDef("chain", "VARCHAR", ("NOT NULL",)),
        ColumnDef("active", "BOOLEAN", ("NOT NULL", "DEFAULT true")),
        *_TIMESTAMPS,
    ),
)

PIPELINE_RUNS_TABLE = TableSchema(
    name="pipeline_runs",
    sequence="pipeline_runs_id_seq",
    columns=(
        _id_column("pipeline_runs_id_seq"),
        ColumnDef("pipeline_id", "BIGINT", ("NOT NULL",)),
        ColumnDef("status", "VARCHAR", ("NOT NULL",)),
        ColumnDef("stage", "VARCHAR", ("NOT NULL",)),
        ColumnDef("n_successful", "INTEGER", ("NOT NULL", "DEFAULT 0", "CHECK (n_successful >= 0)")),
        ColumnDef("n_failed", "INTEGER", ("NOT NULL", "DEFAULT 0", "CHECK (n_failed >= 0)")),
        ColumnDef("n_skipped", "INTEGER", ("NOT NULL", "DEFAULT 0", "CHECK (n_skipped >= 0)")),
        *_TIMESTAMPS,
    ),
)

PIPELINE_RUN_LOGS_TABLE = TableSchema(
    name="pipeline_run_logs",
    sequence="pipeline_run_logs_id_seq",
    columns=(
        _id_column("pipeline_run_logs_id_seq"),
        ColumnDef("pipeline_run_id", "BIGINT", ("NOT NULL",)),
        ColumnDef("level", "VARCHAR", ("NOT NULL",)),
        ColumnDef("message", "VARCHAR", ("NOT NULL",)),
        ColumnDef("created_at", "TIMESTAMP", ("NOT NULL", "DEFAULT current_timestamp")),
    ),
)


def point_tables() -> Sequence[TableSchema]:
    """Return the canonical point storage tables."""

    return (UNIVARIATES_TABLE, AGGREGATES_TABLE)


def pipeline_tables() -> Sequence[TableSchema]:
    """Return the feed and pipeline bookkeeping tables."""

    return (TIME_SERIES_TABLE, PIPELINES_TABLE, PIPELINE_RUNS_TABLE, PIPELINE_RUN_LOGS_TABLE)


def ensure_all_tables(conn: DuckDBPyConnection) -> None:
    """Create every tickerpipe table on the provided connection."""

    for table in (*pipeline_tables(), *point_tables()):
        table.ensure(conn)


def create_all_ddl() -> Iterable[str]:
    """Yield the DDL statements for every table."""

    for table in (*pipeline_tables(), *point_tables()):
        yield from table.statements()


__all__ = [
    "AGGREGATES_TABLE",
    "ColumnDef",
    "PIPELINES_TABLE",
    "PIPELINE_RUNS_TABLE",
    "PIPELINE_RUN_LOGS_TABLE",
    "TIME_SERIES_TABLE",
    "TableSchema",
    "UNIVARIATES_TABLE",
    "UniqueIndex",
    "create_all_ddl",
    "ensure_all_tables",
    "pipeline_tables",
    "point_tables",
]
