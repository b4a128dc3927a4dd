"""Integration tests for the display pipeline."""

import dataclasses
from datetime import datetime

import pytest

from byma_app.data.parsers import ParseMeta
from byma_app.errors import MissingColumnsError
from byma_app.processing.pipeline import DisplayPipeline, build_warnings, process_operations

PROCESSED_AT = datetime(2025, 10, 17, 18, 0, 0)


def strip_durations(report):
    summaries = [report["summary"]] + [view["summary"] for view in report["views"].values()]
    for summary in summaries:
        summary.pop("durationMs", None)
    return report


class TestDisplayPipeline:
    """Test suite for a full display run."""

    def test_report_shape(self, option_rows, configuration, effective_rates) -> None:
        report = process_operations(option_rows, configuration, effective_rates=effective_rates,
                                    processed_at=PROCESSED_AT)

        assert set(report) == {"summary", "calls", "puts", "exclusions", "views", "groups",
                               "operations", "activeView", "meta"}
        assert report["activeView"] == "raw"
        assert set(report["views"]) == {"raw", "averaged"}
        summary = report["summary"]
        assert summary["fileName"] == "operaciones.csv"
        assert summary["processedAt"] == "2025-10-17T18:00:00"
        assert summary["rawRowCount"] == 6
        assert summary["validRowCount"] == 4
        assert summary["excludedRowCount"] == 2
        assert summary["callsRows"] == 2
        assert summary["putsRows"] == 1
        assert summary["warnings"] == []

    def test_raw_view_positions(self, option_rows, configuration, effective_rates) -> None:
        report = process_operations(option_rows, configuration, effective_rates=effective_rates)

        calls = report["calls"]["operations"]
        assert [(c["orderId"], c["totalQuantity"]) for c in calls] == [("A1", 15), ("A3", -2)]
        assert calls[0]["averagePrice"] == pytest.approx(153.3333, abs=1e-4)
        assert calls[0]["strike"] == 4734.3
        assert calls[0]["category"] == "option"
        puts = report["puts"]["operations"]
        assert [(p["totalQuantity"], p["averagePrice"], p["strike"]) for p in puts] == [(-3, 80, 4500.0)]

    def test_averaged_view_conserves_quantity(self, option_rows, configuration,
                                              effective_rates) -> None:
        averaged_config = dataclasses.replace(configuration, use_averaging=True)

        report = process_operations(option_rows, averaged_config, effective_rates=effective_rates)

        assert report["activeView"] == "averaged"
        calls = report["calls"]["operations"]
        assert len(calls) == 1
        assert calls[0]["totalQuantity"] == 13
        assert calls[0]["averagePrice"] == pytest.approx(round(1960 / 13, 4))
        raw_calls = report["views"]["raw"]["calls"]["operations"]
        assert sum(c["totalQuantity"] for c in raw_calls) == 13
        assert report["calls"]["stats"]["netQuantity"] == 13

    def test_exclusions(self, option_rows, configuration) -> None:
        report = process_operations(option_rows, configuration)

        exclusions = report["exclusions"]
        assert sum(exclusions["validation"].values()) == 2
        assert exclusions["validation"]["invalidQuantity"] == 1
        assert exclusions["validation"]["invalidStatus"] == 1
        assert exclusions["consolidation"] == {"zeroNetQuantity": 0}
        assert sum(exclusions["combined"].values()) == 2

    def test_operations_and_groups(self, option_rows, configuration, effective_rates) -> None:
        report = process_operations(option_rows, configuration, effective_rates=effective_rates)

        assert len(report["operations"]) == 4
        assert all(op["symbol"] == "GGAL" for op in report["operations"])
        counts = [group["counts"] for group in report["groups"]]
        assert sum(c["calls"] for c in counts) == 3
        assert sum(c["puts"] for c in counts) == 1

    def test_missing_columns(self, configuration) -> None:
        rows = [{"order_id": "1", "symbol": "XYZ", "quantity": "1", "price": "1"}]

        with pytest.raises(MissingColumnsError) as exc_info:
            process_operations(rows, configuration)

        assert exc_info.value.missing_columns == ["side", "option_type", "strike"]

    def test_absent_side_with_resolvable_columns(self, option_rows, configuration) -> None:
        """Test that an absent side column excludes every row instead of aborting."""
        rows = [{key: value for key, value in row.items() if key not in ("side", "option_type")}
                for row in option_rows]

        report = process_operations(rows, configuration)

        assert report["operations"] == []
        assert report["exclusions"]["validation"]["missingRequiredField"] == 6

    def test_empty_rows(self, configuration) -> None:
        report = process_operations([], configuration)

        assert report["summary"]["totalRows"] == 0
        assert report["operations"] == []

    def test_deterministic(self, option_rows, configuration, effective_rates) -> None:
        """Test that two runs over the same input give the same report."""
        pipeline = DisplayPipeline(configuration, effective_rates=effective_rates)

        first = pipeline.run(option_rows, processed_at=PROCESSED_AT)
        second = pipeline.run(option_rows, processed_at=PROCESSED_AT)

        assert strip_durations(first) == strip_durations(second)

    def test_input_not_mutated(self, option_rows, configuration) -> None:
        snapshot = [dict(row) for row in option_rows]

        process_operations(option_rows, configuration)

        assert option_rows == snapshot


class TestBuildWarnings:
    """Test suite for reader warnings."""

    def test_flags(self) -> None:
        meta = ParseMeta(row_count=10, exceeded_max_rows=True, warning_threshold_exceeded=True)

        assert build_warnings(meta) == ["largeFileThreshold", "maxRowsExceeded"]
        assert build_warnings(None) == []
