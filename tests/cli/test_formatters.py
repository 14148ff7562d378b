from __future__ import annotations

import io
import json
from datetime import date, datetime

import pytest

from tickerpipe.cli.formatters import JSONLFormatter, TableFormatter, create_formatter
from tickerpipe.core.models.pipeline import RunStatus


def test_jsonl_renders_plain_values() -> None:
    stream = io.StringIO()
    rows = [{"status": RunStatus.FAILED, "since": date(2024, 1, 2), "at": datetime(2024, 1, 2, 3, 4), "n": 1}]

    JSONLFormatter().render(rows, stream=stream, columns=["status", "since", "at"])

    assert json.loads(stream.getvalue()) == {"status": "FAILED", "since": "2024-01-02", "at": "2024-01-02T03:04:00"}


def test_table_renders_headers_and_placeholders() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render([{"ticker": "DGS10", "latest": None}], stream=stream)

    output = stream.getvalue()
    assert "ticker" in output and "DGS10" in output
    assert "-" in output


def test_table_reports_empty_results() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render([], stream=stream, columns=["ticker"])

    assert stream.getvalue().strip() == "No rows."


def test_create_formatter_rejects_unknown_names() -> None:
    assert isinstance(create_formatter(" JSONL "), JSONLFormatter)
    with pytest.raises(ValueError, match="Unsupported format"):
        create_formatter("xml")
