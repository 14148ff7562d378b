"""Persistence for feeds, pipelines, runs and run log entries."""

from __future__ import annotations

from collections.abc import Container
from typing import Any

import duckdb
from duckdb import DuckDBPyConnection

from tickerpipe.core.exceptions import ConfigurationError, DuplicateKeyError, RunNotFoundError, StorageError
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe
from tickerpipe.core.models.pipeline import LogLevel, Pipeline, PipelineRun, RunLogEntry, RunStage, RunStatus
from tickerpipe.core.timeutils import utcnow

_FEED_COLUMNS = "id, ticker, timeframe, source, source_id, kind, description, since, created_at"
_PIPELINE_COLUMNS = "id, time_series_id, chain, active, created_at"
_RUN_COLUMNS = "id, pipeline_id, status, stage, n_successful, n_failed, n_skipped, created_at, updated_at"
_LOG_COLUMNS = "id, pipeline_run_id, level, message, created_at"


def _feed_from_row(row: tuple[Any, ...]) -> Feed:
    return Feed(
        id=row[0],
        ticker=row[1],
        timeframe=Timeframe(row[2]),
        source=row[3],
        source_id=row[4],
        kind=SeriesKind(row[5]),
        description=row[6],
        since=row[7],
        created_at=row[8],
    )


def _run_from_row(row: tuple[Any, ...]) -> PipelineRun:
    return PipelineRun(
        id=row[0],
        pipeline_id=row[1],
        status=RunStatus(row[2]),
        stage=RunStage(row[3]),
        n_successful=row[4],
        n_failed=row[5],
        n_skipped=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


def _log_from_row(row: tuple[Any, ...]) -> RunLogEntry:
    return RunLogEntry(
        id=row[0],
        pipeline_run_id=row[1],
        level=LogLevel(row[2]),
        message=row[3],
        created_at=row[4],
    )


class PipelineStore:
    """Feed/pipeline/run bookkeeping on top of a DuckDB connection.

    ``chains``, when given, is the set of known strategy names; pipelines
    referencing any other chain are rejected at creation time.
    """

    def __init__(self, conn: DuckDBPyConnection, chains: Container[str] | None = None) -> None:
        self.conn = conn
        self.chains = chains

    # feeds

    def create_feed(self, feed: Feed) -> Feed:
        now = utcnow()
        try:
            row = self.conn.execute(
                f"""
                INSERT INTO time_series (ticker, timeframe, source, source_id, kind, description, since,
                                         created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING {_FEED_COLUMNS}
                """,
                [
                    feed.ticker,
                    feed.timeframe.value,
                    feed.source,
                    feed.source_id,
                    feed.kind.value,
                    feed.description,
                    feed.since,
                    now,
                    now,
                ],
            ).fetchone()
        except duckdb.ConstraintException as exc:
            raise DuplicateKeyError(f"Feed {feed.ticker} already exists", table="time_series") from exc
        return _feed_from_row(row)

    def get_feed(self, feed_id: int) -> Feed | None:
        row = self.conn.execute(f"SELECT {_FEED_COLUMNS} FROM time_series WHERE id = ?", [feed_id]).fetchone()
        return _feed_from_row(row) if row else None

    def get_feed_by_ticker(self, ticker: str) -> Feed | None:
        row = self.conn.execute(
            f"SELECT {_FEED_COLUMNS} FROM time_series WHERE ticker = ?",
            [ticker.strip()],
        ).fetchone()
        return _feed_from_row(row) if row else None

    def list_feeds(self, source: str | None = None) -> list[Feed]:
        if source is None:
            rows = self.conn.execute(f"SELECT {_FEED_COLUMNS} FROM time_series ORDER BY ticker").fetchall()
        else:
            rows = self.conn.execute(
                f"SELECT {_FEED_COLUMNS} FROM time_series WHERE source = ? ORDER BY ticker",
                [source.strip().lower()],
            ).fetchall()
        return [_feed_from_row(row) for row in rows]

    def update_feed(self, feed: Feed) -> Feed:
        """Persist every mutable attribute of ``feed``; the ticker is immutable."""

        if feed.id is None:
            raise StorageError("Cannot update a feed that was never stored")
        self.conn.execute(
            """
            UPDATE time_series
            SET timeframe = ?, source = ?, source_id = ?, kind = ?, description = ?, since = ?, updated_at = ?
            WHERE id = ?
            """,
            [
                feed.timeframe.value,
                feed.source,
                feed.source_id,
                feed.kind.value,
                feed.description,
                feed.since,
                utcnow(),
                feed.id,
            ],
        )
        stored = self.get_feed(feed.id)
        if stored is None:
            raise StorageError(f"Feed {feed.id} not found")
        return stored

    # pipelines

    def create_pipeline(self, time_series_id: int, chain: str, active: bool = True) -> Pipeline:
        if self.chains is not None and chain not in self.chains:
            raise ConfigurationError(f"Unknown import chain '{chain}'", details={"chain": chain})
        if self.get_feed(time_series_id) is None:
            raise ConfigurationError(f"Feed {time_series_id} not found", details={"time_series_id": time_series_id})
        now = utcnow()
        row = self.conn.execute(
            f"""
            INSERT INTO pipelines (time_series_id, chain, active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING {_PIPELINE_COLUMNS}
            """,
            [time_series_id, chain, active, now, now],
        ).fetchone()
        return Pipeline(id=row[0], time_series_id=row[1], chain=row[2], active=row[3], created_at=row[4])

    def get_pipeline(self, pipeline_id: int) -> Pipeline | None:
        row = self.conn.execute(
            f"SELECT {_PIPELINE_COLUMNS} FROM pipelines WHERE id = ?",
            [pipeline_id],
        ).fetchone()
        if row is None:
            return None
        return self._pipeline_from_row(row)

    def list_pipelines(self, active: bool | None = None, time_series_id: int | None = None) -> list[Pipeline]:
        clauses: list[str] = []
        params: list[Any] = []
        if active is not None:
            clauses.append("active = ?")
            params.append(active)
        if time_series_id is not None:
            clauses.append("time_series_id = ?")
            params.append(time_series_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(
            f"SELECT {_PIPELINE_COLUMNS} FROM pipelines{where} ORDER BY id",
            params,
        ).fetchall()
        return [self._pipeline_from_row(row) for row in rows]

    def set_pipeline_active(self, pipeline_id: int, active: bool) -> Pipeline:
        self.conn.execute(
            "UPDATE pipelines SET active = ?, updated_at = ? WHERE id = ?",
            [active, utcnow(), pipeline_id],
        )
        pipeline = self.get_pipeline(pipeline_id)
        if pipeline is None:
            raise StorageError(f"Pipeline {pipeline_id} not found")
        return pipeline

    def delete_pipeline(self, pipeline_id: int) -> bool:
        """Delete a pipeline together with its runs and their log entries."""

        if self.get_pipeline(pipeline_id) is None:
            return False
        self.conn.begin()
        try:
            self.conn.execute(
                "DELETE FROM pipeline_run_logs WHERE pipeline_run_id IN "
                "(SELECT id FROM pipeline_runs WHERE pipeline_id = ?)",
                [pipeline_id],
            )
            self.conn.execute("DELETE FROM pipeline_runs WHERE pipeline_id = ?", [pipeline_id])
            self.conn.execute("DELETE FROM pipelines WHERE id = ?", [pipeline_id])
        except duckdb.Error as exc:
            self.conn.rollback()
            raise StorageError(f"Failed to delete pipeline {pipeline_id}: {exc}") from exc
        self.conn.commit()
        return True

    def _pipeline_from_row(self, row: tuple[Any, ...]) -> Pipeline:
        return Pipeline(
            id=row[0],
            time_series_id=row[1],
            chain=row[2],
            active=row[3],
            created_at=row[4],
            latest_run=self.latest_run(row[0]),
        )

    # runs

    def create_run(self, pipeline_id: int) -> PipelineRun:
        if self.get_pipeline(pipeline_id) is None:
            raise ConfigurationError(f"Pipeline {pipeline_id} not found", details={"pipeline_id": pipeline_id})
        run = PipelineRun(pipeline_id=pipeline_id)
        now = utcnow()
        row = self.conn.execute(
            f"""
            INSERT INTO pipeline_runs (pipeline_id, status, stage, n_successful, n_failed, n_skipped,
                                       created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING {_RUN_COLUMNS}
            """,
            [
                run.pipeline_id,
                run.status.value,
                run.stage.value,
                run.n_successful,
                run.n_failed,
                run.n_skipped,
                now,
                now,
            ],
        ).fetchone()
        return _run_from_row(row)

    def get_run(self, run_id: int) -> PipelineRun | None:
        row = self.conn.execute(f"SELECT {_RUN_COLUMNS} FROM pipeline_runs WHERE id = ?", [run_id]).fetchone()
        return _run_from_row(row) if row else None

    def require_run(self, run_id: int) -> PipelineRun:
        run = self.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def save_run(self, run: PipelineRun) -> PipelineRun:
        """Write status, stage and counters of ``run`` back to storage."""

        if run.id is None:
            raise RunNotFoundError(-1)
        run.updated_at = utcnow()
        self.conn.execute(
            """
            UPDATE pipeline_runs
            SET status = ?, stage = ?, n_successful = ?, n_failed = ?, n_skipped = ?, updated_at = ?
            WHERE id = ?
            """,
            [
                run.status.value,
                run.stage.value,
                run.n_successful,
                run.n_failed,
                run.n_skipped,
                run.updated_at,
                run.id,
            ],
        )
        return run

    def list_runs(self, pipeline_id: int | None = None, status: RunStatus | None = None) -> list[PipelineRun]:
        clauses: list[str] = []
        params: list[Any] = []
        if pipeline_id is not None:
            clauses.append("pipeline_id = ?")
            params.append(pipeline_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(f"SELECT {_RUN_COLUMNS} FROM pipeline_runs{where} ORDER BY id", params).fetchall()
        return [_run_from_row(row) for row in rows]

    def latest_run(self, pipeline_id: int) -> PipelineRun | None:
        row = self.conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM pipeline_runs WHERE pipeline_id = ? ORDER BY id DESC LIMIT 1",
            [pipeline_id],
        ).fetchone()
        return _run_from_row(row) if row else None

    # run log

    def append_log(self, run_id: int, level: LogLevel, message: str) -> RunLogEntry:
        row = self.conn.execute(
            f"""
            INSERT INTO pipeline_run_logs (pipeline_run_id, level, message, created_at)
            VALUES (?, ?, ?, ?)
            RETURNING {_LOG_COLUMNS}
            """,
            [run_id, level.value, message, utcnow()],
        ).fetchone()
        return _log_from_row(row)

    def list_logs(self, run_id: int, level: LogLevel | None = None) -> list[RunLogEntry]:
        if level is None:
            rows = self.conn.execute(
                f"SELECT {_LOG_COLUMNS} FROM pipeline_run_logs WHERE pipeline_run_id = ? ORDER BY id",
                [run_id],
            ).fetchall()
        else:
            rows = self.conn.execute(
                f"SELECT {_LOG_COLUMNS} FROM pipeline_run_logs WHERE pipeline_run_id = ? AND level = ? ORDER BY id",
                [run_id, level.value],
            ).fetchall()
        return [_log_from_row(row) for row in rows]


__all__ = ["PipelineStore"]
