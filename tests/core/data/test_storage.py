from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

import pytest

from tickerpipe.core.config.settings import StorageConfig
from tickerpipe.core.data.ingestion import AggregatePoint, UnivariatePoint
from tickerpipe.core.data.schema import create_all_ddl, ensure_all_tables
from tickerpipe.core.data.storage import DuckDBFactoryConfig, PipelineStore, PointStore, TickerPipeDuckDBFactory
from tickerpipe.core.exceptions import ConfigurationError, DuplicateKeyError, RunNotFoundError, StorageError
from tickerpipe.core.models.market import Feed, SeriesKind, Timeframe
from tickerpipe.core.models.pipeline import LogLevel, RunStage, RunStatus


def _univariate(ticker: str, day: int, value: float) -> UnivariatePoint:
    return UnivariatePoint(ticker, Timeframe.D1, datetime(2024, 1, day), value)


def _bar(ticker: str, day: int, close: float, volume: float | None = 100.0) -> AggregatePoint:
    return AggregatePoint(ticker, Timeframe.D1, datetime(2024, 1, day), close, close + 1, close - 1, close, close, volume)


def test_factory_creates_schema_and_applies_pragmas(tmp_path: Path) -> None:
    database = tmp_path / "nested" / "tickerpipe.duckdb"
    factory = TickerPipeDuckDBFactory(DuckDBFactoryConfig(database=database, pragmas={"threads": 2}))

    with factory.connection() as conn:
        tables = {row[0] for row in conn.execute("SELECT table_name FROM information_schema.tables").fetchall()}
        threads = conn.execute("SELECT current_setting('threads')").fetchone()[0]

    assert database.exists()
    assert {"time_series", "univariates", "aggregates", "pipelines", "pipeline_runs", "pipeline_run_logs"} <= tables
    assert int(threads) == 2


def test_factory_from_storage_config(tmp_path: Path) -> None:
    storage = StorageConfig(database=str(tmp_path / "tp.duckdb"), threads=3)

    factory = TickerPipeDuckDBFactory.from_storage_config(storage)

    assert factory.config.pragmas == {"threads": 3}
    assert not factory.config.in_memory


def test_factory_rejects_unsafe_setting_names() -> None:
    factory = TickerPipeDuckDBFactory(DuckDBFactoryConfig(pragmas={"threads=1; DROP TABLE x; --": 1}))

    with pytest.raises(StorageError):
        factory.create_connection()


def test_schema_ddl_declares_natural_key_indexes() -> None:
    ddl = "\n".join(create_all_ddl())

    assert "CREATE UNIQUE INDEX IF NOT EXISTS index_univariates_on_ticker_and_ts ON univariates (ticker, ts)" in ddl
    assert "ON aggregates (timeframe, ticker, ts)" in ddl
    assert "ON time_series (ticker)" in ddl


def test_schema_is_idempotent(conn) -> None:
    ensure_all_tables(conn)
    ensure_all_tables(conn)


class TestPointStore:
    def test_insert_and_find(self, points: PointStore) -> None:
        assert points.insert_batch([_univariate("DGS10", 2, 3.9), _bar("SPY", 2, 470.0)]) == 2

        stored = points.find(_univariate("DGS10", 2, 0.0))
        bar = points.find(_bar("SPY", 2, 0.0))

        assert stored == _univariate("DGS10", 2, 3.9)
        assert bar is not None and bar.close == 470.0 and bar.volume == 100.0
        assert points.find(_univariate("DGS10", 3, 0.0)) is None

    def test_batch_with_conflict_is_rolled_back(self, points: PointStore) -> None:
        points.insert_one(_univariate("DGS10", 3, 3.9))

        with pytest.raises(DuplicateKeyError):
            points.insert_batch([_univariate("DGS10", 2, 1.0), _univariate("DGS10", 3, 2.0)])

        assert points.count("DGS10") == 1
        assert points.find(_univariate("DGS10", 2, 0.0)) is None

    def test_insert_one_rejects_duplicates(self, points: PointStore) -> None:
        points.insert_one(_bar("SPY", 2, 470.0))

        with pytest.raises(DuplicateKeyError) as excinfo:
            points.insert_one(_bar("SPY", 2, 471.0))

        assert excinfo.value.details["ticker"] == "SPY"

    def test_aggregate_key_includes_timeframe(self, points: PointStore) -> None:
        daily = _bar("SPY", 2, 470.0)
        weekly = AggregatePoint("SPY", Timeframe.W1, daily.ts, 1, 2, 0.5, 1.5)

        points.insert_batch([daily, weekly])

        assert points.count("SPY", SeriesKind.AGGREGATE) == 2

    def test_update_overwrites_values(self, points: PointStore) -> None:
        points.insert_one(_bar("SPY", 2, 470.0))

        assert points.update(_bar("SPY", 2, 480.0, volume=None)) is True

        stored = points.find(_bar("SPY", 2, 0.0))
        assert stored.close == 480.0
        assert stored.volume is None
        assert points.update(_bar("SPY", 9, 1.0)) is False

    def test_latest_timestamps_span_both_tables(self, points: PointStore) -> None:
        points.insert_batch([_univariate("DGS10", 2, 1.0), _univariate("DGS10", 5, 1.0), _bar("SPY", 4, 470.0)])

        assert points.latest_timestamp("DGS10", SeriesKind.UNIVARIATE) == datetime(2024, 1, 5)
        assert points.latest_timestamp("SPY", SeriesKind.UNIVARIATE) is None
        assert points.latest_timestamps() == {"DGS10": datetime(2024, 1, 5), "SPY": datetime(2024, 1, 4)}

    def test_count_without_ticker(self, points: PointStore) -> None:
        points.insert_batch([_univariate("A", 2, 1.0), _univariate("B", 2, 1.0)])

        assert points.count() == 2
        assert points.count(kind=SeriesKind.AGGREGATE) == 0


class TestFeeds:
    def test_create_and_lookup(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        feed = make_feed("DGS10", source=" FRED ", since=date(2020, 1, 1))

        assert feed.id is not None
        assert feed.source == "fred"
        assert feed.created_at is not None
        assert store.get_feed(feed.id) == feed
        assert store.get_feed_by_ticker("DGS10") == feed
        assert store.get_feed(9999) is None

    def test_ticker_is_unique(self, make_feed: Callable[..., Feed]) -> None:
        make_feed("DGS10")

        with pytest.raises(DuplicateKeyError, match="DGS10 already exists"):
            make_feed("DGS10", source="cboe")

    def test_list_filters_by_source(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        make_feed("VIX", source="cboe", kind=SeriesKind.AGGREGATE)
        make_feed("DGS10")
        make_feed("DGS2")

        assert [feed.ticker for feed in store.list_feeds()] == ["DGS10", "DGS2", "VIX"]
        assert [feed.ticker for feed in store.list_feeds(source="CBOE")] == ["VIX"]

    def test_update_feed(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        feed = make_feed("DGS10")
        feed.description = "10-Year Treasury"
        feed.timeframe = Timeframe.W1

        updated = store.update_feed(feed)

        assert updated.description == "10-Year Treasury"
        assert updated.timeframe is Timeframe.W1


class TestPipelines:
    def test_create_requires_known_chain(self, conn, make_feed: Callable[..., Feed]) -> None:
        feed = make_feed()
        store = PipelineStore(conn, chains={"fred_flat"})

        assert store.create_pipeline(feed.id, "fred_flat").chain == "fred_flat"
        with pytest.raises(ConfigurationError, match="Unknown import chain"):
            store.create_pipeline(feed.id, "nope")

    def test_create_requires_existing_feed(self, store: PipelineStore) -> None:
        with pytest.raises(ConfigurationError, match="Feed 42 not found"):
            store.create_pipeline(42, "fred_flat")

    def test_latest_run_is_attached(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        pipeline = store.create_pipeline(make_feed().id, "fred_flat")
        assert store.get_pipeline(pipeline.id).latest_run is None
        assert store.get_pipeline(pipeline.id).status is RunStatus.PENDING

        store.create_run(pipeline.id)
        second = store.create_run(pipeline.id)

        loaded = store.get_pipeline(pipeline.id)
        assert loaded.latest_run.id == second.id

    def test_activation_and_filters(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        feed = make_feed()
        first = store.create_pipeline(feed.id, "fred_flat")
        second = store.create_pipeline(feed.id, "flat_file", active=False)

        assert [p.id for p in store.list_pipelines(active=True)] == [first.id]
        assert store.set_pipeline_active(second.id, True).active is True
        assert store.set_pipeline_active(first.id, False).active is False
        assert [p.id for p in store.list_pipelines(active=False)] == [first.id]
        assert len(store.list_pipelines(time_series_id=feed.id)) == 2

    def test_delete_cascades_to_runs_and_logs(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        feed = make_feed()
        doomed = store.create_pipeline(feed.id, "fred_flat")
        kept = store.create_pipeline(feed.id, "flat_file")
        run = store.create_run(doomed.id)
        other = store.create_run(kept.id)
        store.append_log(run.id, LogLevel.INFO, "started")
        store.append_log(other.id, LogLevel.INFO, "started")

        assert store.delete_pipeline(doomed.id) is True

        assert store.get_pipeline(doomed.id) is None
        assert store.get_run(run.id) is None
        assert store.list_logs(run.id) == []
        assert len(store.list_logs(other.id)) == 1
        assert store.delete_pipeline(doomed.id) is False


class TestRuns:
    def test_new_run_is_pending_at_start(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        pipeline = store.create_pipeline(make_feed().id, "fred_flat")

        run = store.create_run(pipeline.id)

        assert (run.status, run.stage) == (RunStatus.PENDING, RunStage.START)
        assert (run.n_successful, run.n_failed, run.n_skipped) == (0, 0, 0)
        assert run.can_run()

    def test_create_run_for_missing_pipeline(self, store: PipelineStore) -> None:
        with pytest.raises(ConfigurationError):
            store.create_run(7)

    def test_save_round_trips_state(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        run = store.create_run(store.create_pipeline(make_feed().id, "fred_flat").id)
        run.start()
        run.advance_to(RunStage.IMPORT)
        run.add_counts(successful=5, failed=1, skipped=2)

        store.save_run(run)

        loaded = store.require_run(run.id)
        assert (loaded.status, loaded.stage) == (RunStatus.WORKING, RunStage.IMPORT)
        assert (loaded.n_successful, loaded.n_failed, loaded.n_skipped) == (5, 1, 2)
        assert loaded.updated_at >= loaded.created_at

    def test_require_run_raises_for_unknown_id(self, store: PipelineStore) -> None:
        with pytest.raises(RunNotFoundError):
            store.require_run(123)

    def test_list_runs_filters(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        pipeline = store.create_pipeline(make_feed().id, "fred_flat")
        done = store.create_run(pipeline.id)
        done.start()
        done.complete()
        store.save_run(done)
        pending = store.create_run(pipeline.id)

        assert [run.id for run in store.list_runs(pipeline_id=pipeline.id)] == [done.id, pending.id]
        assert [run.id for run in store.list_runs(status=RunStatus.PENDING)] == [pending.id]
        assert store.latest_run(pipeline.id).id == pending.id


class TestRunLogs:
    def test_append_and_filter_by_level(self, store: PipelineStore, make_feed: Callable[..., Feed]) -> None:
        run = store.create_run(store.create_pipeline(make_feed().id, "fred_flat").id)
        store.append_log(run.id, LogLevel.INFO, "Stage FETCH")
        store.append_log(run.id, LogLevel.WARN, "Cleanup failed")
        entry = store.append_log(run.id, LogLevel.ERROR, "Download failed")

        assert entry.id is not None and entry.level is LogLevel.ERROR
        assert [log.message for log in store.list_logs(run.id)] == ["Stage FETCH", "Cleanup failed", "Download failed"]
        assert [log.message for log in store.list_logs(run.id, LogLevel.WARN)] == ["Cleanup failed"]
