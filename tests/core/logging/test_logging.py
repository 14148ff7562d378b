"""Structured logging tests."""

from __future__ import annotations

import io
import json

import pytest
from loguru import logger
from pydantic import ValidationError

from tickerpipe.core.logging import (
    JsonLineSink,
    LogConfig,
    configure_logging,
    current_trace_id,
    get_logger,
    log_context,
)


def _records(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestConfiguration:
    def test_default_config(self):
        config = LogConfig()
        assert config.level == "INFO"
        assert config.console is True
        assert config.path is None

    def test_level_is_normalised(self):
        assert LogConfig(level=" debug ").level == "DEBUG"

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValidationError):
            LogConfig(level="chatty")

    def test_overrides_apply_on_top_of_config(self):
        stream = io.StringIO()
        effective = configure_logging(LogConfig(level="ERROR"), stream=stream, level="warning")

        assert effective.level == "WARNING"
        assert effective.stream is stream

    def test_sink_needs_one_target(self):
        with pytest.raises(ValueError):
            JsonLineSink()


class TestJsonLines:
    def test_payload_fields(self):
        stream = io.StringIO()
        configure_logging(level="INFO", stream=stream)

        logger.bind(source="fred").info("Downloaded {}", "DGS10")

        (record,) = _records(stream)
        assert record["message"] == "Downloaded DGS10"
        assert record["level"] == "INFO"
        assert record["source"] == "fred"
        assert record["run_id"] is None
        assert record["ticker"] is None
        assert record["error_code"] is None
        assert record["trace_id"]
        assert "timestamp" in record
        assert "context" not in record

    def test_level_filtering(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", stream=stream)

        logger.info("hidden")
        logger.warning("shown")

        assert [record["message"] for record in _records(stream)] == ["shown"]

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "tickerpipe.log"
        configure_logging(console=False, path=str(log_file))

        logger.info("to file")
        logger.info("appended")

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["to file", "appended"]

    def test_exception_is_serialised(self):
        stream = io.StringIO()
        configure_logging(stream=stream)

        try:
            raise ValueError("bad row")
        except ValueError as exc:
            logger.opt(exception=exc).error("import failed")

        (record,) = _records(stream)
        assert record["exception"] == "ValueError: bad row"


class TestContext:
    def test_log_context_promotes_pipeline_fields(self):
        stream = io.StringIO()
        configure_logging(stream=stream)

        with log_context(trace_id="trace-1", run_id=42, ticker="DGS10"):
            get_logger("tickerpipe.test").info("inside")
        logger.info("outside")

        inside, outside = _records(stream)
        assert inside["trace_id"] == "trace-1"
        assert inside["run_id"] == 42
        assert inside["ticker"] == "DGS10"
        assert inside["context"] == {"logger_name": "tickerpipe.test"}
        assert outside["run_id"] is None
        assert outside["trace_id"] != "trace-1"

    def test_bound_values_win_over_context(self):
        stream = io.StringIO()
        configure_logging(stream=stream)

        with log_context(run_id=1):
            logger.bind(run_id=2).info("bound")

        assert _records(stream)[0]["run_id"] == 2

    def test_nested_contexts_restore_outer_values(self):
        with log_context(trace_id="outer"):
            with log_context(trace_id="inner") as trace:
                assert trace == "inner"
                assert current_trace_id() == "inner"
            assert current_trace_id() == "outer"

    def test_context_starts_a_trace_when_none_is_given(self):
        with log_context() as trace:
            assert trace
            assert current_trace_id() == trace
