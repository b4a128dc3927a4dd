"""
Display pipeline for broker execution exports.

Runs parsed rows through normalization, validation, symbol enrichment,
fee enrichment and consolidation, and assembles the report consumed by
the CLI and the JSON export: per-view positions and stats, exclusion
counters, groups and the enriched operations.
"""

import time
from datetime import datetime
from typing import Any, Optional

from ..config.validation import ConfigValidator
from ..data.enrichment import derive_groups, enrich_operation_row
from ..data.models import EnrichedOperation, ProcessingConfiguration
from ..data.normalizer import normalize_operation_rows
from ..data.parsers import ParseMeta
from ..data.validators import validate_and_filter_rows
from ..errors import MissingColumnsError
from ..fees.calculator import CategoryRates, compute_effective_rates
from ..fees.enrichment import enrich_operations_with_fees
from ..fees.instrument_mapping import InstrumentMapping
from ..logging import get_pipeline_logger
from ..logging.config import log_exclusion_summary
from .consolidator import (
    AVERAGED_VIEW,
    RAW_VIEW,
    ConsolidatedPosition,
    ConsolidationResult,
    build_consolidated_views,
)

logger = get_pipeline_logger(__name__)

DEFAULT_FILE_NAME = "operaciones.csv"
NOTIONAL_DECIMALS = 4
DURATION_DECIMALS = 2


def build_warnings(meta: Optional[ParseMeta]) -> list[str]:
    """Report warnings derived from the reader metadata."""
    if meta is None:
        return []
    warnings = []
    if meta.warning_threshold_exceeded:
        warnings.append("largeFileThreshold")
    if meta.exceeded_max_rows:
        warnings.append("maxRowsExceeded")
    if meta.errors:
        warnings.append("parseErrors")
    return warnings


def combine_exclusions(*sources: Optional[dict[str, int]]) -> dict[str, int]:
    combined: dict[str, int] = {}
    for source in sources:
        for reason, count in (source or {}).items():
            combined[reason] = combined.get(reason, 0) + count
    return combined


def compute_group_stats(positions: list[ConsolidatedPosition]) -> dict[str, float]:
    stats = {"rows": 0, "netQuantity": 0.0, "grossQuantity": 0.0, "notional": 0.0}
    for position in positions:
        stats["rows"] += 1
        stats["netQuantity"] += position.total_quantity
        stats["grossQuantity"] += abs(position.total_quantity)
        stats["notional"] += position.total_quantity * position.average_price
    stats["notional"] = round(stats["notional"], NOTIONAL_DECIMALS)
    return stats


class DisplayPipeline:
    """
    Processes one file of execution rows into the display report.

    Holds the per-run state the stages share: the processing configuration
    snapshot, the instrument mapping (with its once-per-code warning sets)
    and the precomputed fee rates.
    """

    def __init__(
        self,
        configuration: ProcessingConfiguration,
        mapping: Optional[InstrumentMapping] = None,
        effective_rates: Optional[dict[str, CategoryRates]] = None,
        caucion_enabled: bool = False,
        repo_fee_config: Optional[dict[str, Any]] = None
    ) -> None:
        self.configuration = configuration
        self.mapping = mapping if mapping is not None else InstrumentMapping()
        self.effective_rates = effective_rates or compute_effective_rates(
            ConfigValidator.validate_fee_config({}))
        self.caucion_enabled = caucion_enabled
        self.repo_fee_config = repo_fee_config
        self.logger = logger

    def enrich(self, rows: list[dict[str, Any]]) -> list[EnrichedOperation]:
        """Symbol and fee enrichment of validated rows."""
        operations = [
            enrich_operation_row(row, self.configuration, index)
            for index, row in enumerate(rows)
        ]
        return enrich_operations_with_fees(
            operations,
            self.mapping,
            self.effective_rates,
            self.caucion_enabled,
            self.repo_fee_config,
        )

    def run(
        self,
        rows: list[dict[str, Any]],
        file_name: str = DEFAULT_FILE_NAME,
        parse_meta: Optional[ParseMeta] = None,
        processed_at: Optional[datetime] = None
    ) -> dict[str, Any]:
        """
        Process parsed rows into the report.

        Args:
            rows: Rows from the CSV reader
            file_name: Name shown in the summary
            parse_meta: Reader metadata, rebuilt from the rows when absent
            processed_at: Report timestamp, now when absent

        Returns:
            Report dictionary with summary, calls, puts, views, exclusions,
            groups, operations and activeView

        Raises:
            MissingColumnsError: If every missing required column is also
                unresolvable from the legacy columns
        """
        start = time.perf_counter()
        parse_meta = parse_meta or ParseMeta(row_count=len(rows))
        file_name = file_name or DEFAULT_FILE_NAME

        self.logger.info("Processing started", file_name=file_name,
                         row_count=parse_meta.row_count)

        normalization = normalize_operation_rows(rows, self.configuration)
        # Abort only when no missing column could be filled; otherwise rows
        # still lacking a field (an absent side column, for example) are
        # excluded as missingRequiredField by the validator.
        if rows and normalization.missing_columns:
            unresolved = normalization.unresolved_columns()
            if len(unresolved) == len(normalization.missing_columns):
                self.logger.error("Required columns missing", file_name=file_name,
                                  missing_columns=unresolved)
                raise MissingColumnsError(
                    f"Missing required columns: {', '.join(unresolved)}",
                    missing_columns=unresolved,
                )

        validated = validate_and_filter_rows(normalization.rows, self.configuration)
        log_exclusion_summary(self.logger, file_name, len(validated.operations),
                              validated.exclusions)

        operations = self.enrich([row.as_row() for row in validated.operations])
        views = build_consolidated_views(operations, self.effective_rates, self.caucion_enabled)
        active_key = AVERAGED_VIEW if self.configuration.use_averaging else RAW_VIEW
        warnings = build_warnings(parse_meta)
        processed_at = (processed_at or datetime.now()).isoformat(timespec="seconds")

        snapshots = {
            key: self._view_snapshot(view, validated.exclusions, len(validated.operations),
                                     parse_meta.row_count, file_name, warnings, processed_at)
            for key, view in views.items()
        }

        active = snapshots[active_key]
        for key, snapshot in snapshots.items():
            self.logger.info("Classification complete", view=key,
                             calls=len(snapshot["calls"]["operations"]),
                             puts=len(snapshot["puts"]["operations"]),
                             active=key == active_key)

        duration_ms = round((time.perf_counter() - start) * 1000, DURATION_DECIMALS)
        for snapshot in snapshots.values():
            snapshot["summary"]["durationMs"] = duration_ms

        self.logger.info("Processing complete", file_name=file_name,
                         valid_rows=len(validated.operations),
                         excluded_rows=active["summary"]["excludedRowCount"],
                         total_rows=active["summary"]["totalRows"],
                         warnings=warnings, view=active_key, duration_ms=duration_ms)

        return {
            "summary": active["summary"],
            "calls": active["calls"],
            "puts": active["puts"],
            "exclusions": active["exclusions"],
            "views": snapshots,
            "groups": derive_groups(operations),
            "operations": [operation.to_dict() for operation in operations],
            "activeView": active_key,
            "meta": {
                "parse": {
                    "rowCount": parse_meta.row_count,
                    "warningThresholdExceeded": parse_meta.warning_threshold_exceeded,
                    "exceededMaxRows": parse_meta.exceeded_max_rows,
                    "errors": [
                        {"row": issue.row, "code": issue.code, "message": issue.message}
                        for issue in parse_meta.errors
                    ],
                },
            },
        }

    def _view_snapshot(self, view: ConsolidationResult, validation_exclusions: dict[str, int],
                       valid_rows: int, raw_rows: int, file_name: str,
                       warnings: list[str], processed_at: str) -> dict[str, Any]:
        combined = combine_exclusions(validation_exclusions, view.exclusions)
        calls_rows = len(view.calls)
        puts_rows = len(view.puts)
        return {
            "key": view.key,
            "averagingEnabled": view.use_averaging,
            "calls": {
                "operations": [position.to_dict() for position in view.calls],
                "stats": compute_group_stats(view.calls),
            },
            "puts": {
                "operations": [position.to_dict() for position in view.puts],
                "stats": compute_group_stats(view.puts),
            },
            "summary": {
                "callsRows": calls_rows,
                "putsRows": puts_rows,
                "totalRows": calls_rows + puts_rows,
                "averagingEnabled": view.use_averaging,
                "activeSymbol": self.configuration.active_symbol,
                "activeExpiration": self.configuration.active_expiration,
                "processedAt": processed_at,
                "fileName": file_name,
                "rawRowCount": raw_rows,
                "validRowCount": valid_rows,
                "excludedRowCount": sum(combined.values()),
                "warnings": list(warnings),
                "durationMs": 0,
            },
            "exclusions": {
                "combined": combined,
                "validation": dict(validation_exclusions),
                "consolidation": dict(view.exclusions),
            },
        }


def process_operations(
    rows: list[dict[str, Any]],
    configuration: Optional[ProcessingConfiguration] = None,
    file_name: str = DEFAULT_FILE_NAME,
    parse_meta: Optional[ParseMeta] = None,
    mapping: Optional[InstrumentMapping] = None,
    effective_rates: Optional[dict[str, CategoryRates]] = None,
    processed_at: Optional[datetime] = None
) -> dict[str, Any]:
    """Run the display pipeline once with a fresh DisplayPipeline."""
    pipeline = DisplayPipeline(
        configuration or ProcessingConfiguration(),
        mapping=mapping,
        effective_rates=effective_rates,
    )
    return pipeline.run(rows, file_name=file_name, parse_meta=parse_meta,
                        processed_at=processed_at)
