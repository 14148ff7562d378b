"""DuckDB connections with tickerpipe's settings and schema applied."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import duckdb
from duckdb import DuckDBPyConnection

from tickerpipe.core.config.settings import StorageConfig
from tickerpipe.core.data.schema import ensure_all_tables
from tickerpipe.core.exceptions import StorageError

IN_MEMORY = ":memory:"

_SETTING_NAME = re.compile(r"^[a-z_]+$")


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    """Where the database lives and which ``SET`` options every connection gets."""

    database: str | Path = IN_MEMORY
    read_only: bool = False
    ensure_schema: bool = True
    pragmas: Mapping[str, object] = field(default_factory=lambda: {"threads": 1})

    @property
    def in_memory(self) -> bool:
        return str(self.database) == IN_MEMORY


class TickerPipeDuckDBFactory:
    """Opens DuckDB connections for the point and pipeline stores.

    File databases get their parent directory created on first use, and
    writable connections run ``ensure_all_tables`` so a fresh file is usable
    straight away.
    """

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self.config = config or DuckDBFactoryConfig()

    @classmethod
    def from_storage_config(cls, storage: StorageConfig) -> TickerPipeDuckDBFactory:
        return cls(DuckDBFactoryConfig(database=storage.database, pragmas={"threads": storage.threads}))

    def create_connection(self) -> DuckDBPyConnection:
        if not self.config.in_memory and not self.config.read_only:
            Path(self.config.database).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = duckdb.connect(database=str(self.config.database), read_only=self.config.read_only)
        except duckdb.Error as exc:
            raise StorageError(
                f"Cannot open database {self.config.database}: {exc}", details={"database": str(self.config.database)}
            ) from exc

        try:
            for name, value in self.config.pragmas.items():
                if not _SETTING_NAME.match(name):
                    raise StorageError(f"Invalid DuckDB setting name {name!r}")
                conn.execute(f"SET {name}=?", [value])
            if self.config.ensure_schema and not self.config.read_only:
                ensure_all_tables(conn)
        except BaseException:
            conn.close()
            raise
        return conn

    @contextmanager
    def connection(self) -> Iterator[DuckDBPyConnection]:
        """Yield a configured connection and close it on exit."""

        conn = self.create_connection()
        try:
            yield conn
        finally:
            conn.close()


__all__ = ["DuckDBFactoryConfig", "IN_MEMORY", "TickerPipeDuckDBFactory"]
