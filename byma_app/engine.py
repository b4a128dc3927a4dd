"""
Main processing engine coordinator.

Owns the state a run needs: merged configuration, fee rates, the
instrument table and the symbol configuration store. Drives either the
display pipeline (options positions with fees) or the arbitrage pipeline
(CI/24hs P&L) over a broker CSV export.
"""

import dataclasses
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import orjson

from .arbitrage.aggregation import (
    aggregate_by_instrumento_plazo,
    filter_grupos_by_instrument,
    get_grupos_summary,
    get_unique_instruments,
)
from .arbitrage.parsing import parse_cauciones, parse_operations
from .arbitrage.pnl import build_arbitrage_rows
from .config.defaults import ArbitrageParams, CsvParams
from .config.loader import ConfigLoader
from .config.symbols import DEFAULT_SYMBOL_CONFIGS, SymbolConfig, create_default_symbol_config
from .data.models import ProcessingConfiguration
from .data.parsers import read_operations_csv
from .errors import MissingDataError
from .fees.calculator import compute_effective_rates
from .fees.instrument_mapping import InstrumentMapping
from .logging import get_logger
from .persistence.symbol_store import SymbolStore
from .processing.pipeline import DisplayPipeline

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _params(params_cls, values: dict[str, Any]):
    """Build a params dataclass from the merged section, ignoring unknown keys."""
    names = {f.name for f in dataclasses.fields(params_cls)}
    return params_cls(**{key: value for key, value in values.items() if key in names})


class ProcessingEngine:
    """
    Coordinator for the operations processing system.

    Manages both pipelines:
    CSV → Validation → Enrichment → Fees → Consolidation (display)
    CSV → Trades/Cauciones → Aggregation → P&L (arbitrage)
    """

    def __init__(
        self,
        config_dir: Optional[PathLike] = None,
        db_path: PathLike = "symbols.db",
        instruments_path: Optional[PathLike] = None,
        run_overrides: Optional[dict[str, Any]] = None
    ) -> None:
        """
        Load configuration, fee rates and the instrument table, and seed
        the symbol store with the configured and default symbols.

        Raises:
            ConfigurationError: If a configuration file is invalid
            PersistenceError: If the symbol store cannot be opened
            MissingDataError: If instruments_path does not exist
        """
        self.logger = logger

        self.config_loader = ConfigLoader.create(Path(config_dir) if config_dir else None)
        self.config = self.config_loader.merge_config(run_overrides)
        self.csv_params = _params(CsvParams, self.config["csv"])
        self.arbitrage_params = _params(ArbitrageParams, self.config["arbitrage"])
        self.caucion_fees_enabled = bool(self.config["fees"].get("caucion_fees_enabled"))

        self.fee_config = self.config_loader.load_fee_config()
        self.effective_rates = compute_effective_rates(self.fee_config)
        self.repo_fee_config = self.fee_config.get("repo") or None

        self.instruments_path = Path(instruments_path) if instruments_path is not None else None
        if self.instruments_path is not None and not self.instruments_path.exists():
            raise MissingDataError(f"Instrument file not found: {self.instruments_path}",
                                   data_type="instruments")

        self.symbol_store = SymbolStore(db_path)
        self.symbol_store.seed_defaults(self._seed_configs())

        self.logger.info("Processing engine initialized",
                         config_dir=str(self.config_loader.config_dir),
                         db_path=str(db_path),
                         instruments_path=str(self.instruments_path) if self.instruments_path else None,
                         caucion_fees_enabled=self.caucion_fees_enabled)

    def _seed_configs(self) -> list[SymbolConfig]:
        """Configured symbols first, then the built-in defaults they do not cover."""
        configs = list(self.config_loader.load_symbol_configs())
        configured = {config.symbol for config in configs}
        for symbol, prefix in DEFAULT_SYMBOL_CONFIGS:
            if symbol not in configured:
                configs.append(create_default_symbol_config(symbol, prefix))
        return configs

    def new_mapping(self) -> InstrumentMapping:
        """Fresh instrument mapping, so unknown-code warnings are per run."""
        if self.instruments_path is None:
            return InstrumentMapping()
        return InstrumentMapping.from_file(self.instruments_path)

    def processing_configuration(
        self,
        active_symbol: Optional[str] = None,
        active_expiration: Optional[str] = None,
        use_averaging: Optional[bool] = None
    ) -> ProcessingConfiguration:
        """Snapshot of the stored symbol configurations and the run scope."""
        processing = self.config["processing"]
        return ProcessingConfiguration.from_symbol_configs(
            self.symbol_store.load_all(),
            active_symbol=processing["active_symbol"] if active_symbol is None else active_symbol,
            active_expiration=(processing["active_expiration"]
                               if active_expiration is None else active_expiration),
            use_averaging=processing["use_averaging"] if use_averaging is None else use_averaging,
        )

    def process_csv(
        self,
        path: PathLike,
        active_symbol: Optional[str] = None,
        active_expiration: Optional[str] = None,
        use_averaging: Optional[bool] = None,
        processed_at: Optional[datetime] = None
    ) -> dict[str, Any]:
        """
        Run the display pipeline over a CSV file.

        Raises:
            MissingDataError: If the file does not exist
            MissingColumnsError: If required columns are missing
        """
        path = Path(path)
        parsed = read_operations_csv(path, self.csv_params)
        pipeline = DisplayPipeline(
            self.processing_configuration(active_symbol, active_expiration, use_averaging),
            mapping=self.new_mapping(),
            effective_rates=self.effective_rates,
            caucion_enabled=self.caucion_fees_enabled,
            repo_fee_config=self.repo_fee_config,
        )
        return pipeline.run(parsed.rows, file_name=path.name, parse_meta=parsed.meta,
                            processed_at=processed_at)

    def process_arbitrage_rows(
        self,
        rows: list[dict[str, Any]],
        jornada: Optional[datetime] = None,
        instrument: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Compute CI/24hs arbitrage P&L for parsed rows.

        Returns:
            Report with the P&L rows, the instruments seen and a groups summary
        """
        mapping = self.new_mapping()
        operations = parse_operations(rows, mapping, self.effective_rates)
        cauciones = parse_cauciones(
            rows, self.repo_fee_config if self.caucion_fees_enabled else None)
        grupos = aggregate_by_instrumento_plazo(operations, cauciones, jornada)
        selected = filter_grupos_by_instrument(grupos, instrument)
        report_rows = build_arbitrage_rows(selected, self.arbitrage_params)

        self.logger.info("Arbitrage processing complete",
                         operations=len(operations), cauciones=len(cauciones),
                         grupos=len(selected), rows=len(report_rows),
                         instrument=instrument or "all")
        return {
            "rows": report_rows,
            "instruments": get_unique_instruments(grupos),
            "summary": get_grupos_summary(grupos),
            "jornada": jornada.isoformat() if jornada else None,
        }

    def process_arbitrage(
        self,
        path: PathLike,
        jornada: Optional[datetime] = None,
        instrument: Optional[str] = None
    ) -> dict[str, Any]:
        """Run the arbitrage pipeline over a CSV file."""
        parsed = read_operations_csv(path, self.csv_params)
        return self.process_arbitrage_rows(parsed.rows, jornada, instrument)

    @staticmethod
    def export_report(report: dict[str, Any], path: PathLike) -> Path:
        """Write a report as indented JSON."""
        path = Path(path)
        path.write_bytes(orjson.dumps(report, option=orjson.OPT_INDENT_2))
        return path
