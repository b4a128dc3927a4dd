"""Integration tests for the processing engine."""

import csv
import os
from datetime import datetime

import orjson
import pytest

from byma_app.engine import ProcessingEngine
from byma_app.errors import ConfigurationError, MissingDataError


def write_csv(path: str, rows) -> str:
    fieldnames = []
    for row in rows:
        fieldnames.extend(key for key in row if key not in fieldnames)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def engine(db_path):
    return ProcessingEngine(db_path=db_path)


class TestEngineSetup:
    """Test suite for engine initialization."""

    def test_seeds_symbol_store(self, engine) -> None:
        symbols = engine.symbol_store.get_all_symbols()

        assert "GGAL" in symbols
        assert "TXAR" in symbols
        ggal = engine.symbol_store.load_symbol_config("GGAL")
        assert ggal.expirations["OCT"].find_override("47343") is not None

    def test_configuration_snapshot(self, engine) -> None:
        configuration = engine.processing_configuration(active_symbol="GGAL", use_averaging=True)

        assert configuration.active_symbol == "GGAL"
        assert configuration.use_averaging is True
        assert configuration.find_symbol_config("GGAL") is not None

    def test_invalid_overrides(self, db_path) -> None:
        with pytest.raises(ConfigurationError):
            ProcessingEngine(db_path=db_path, run_overrides={"arbitrage": {"days_per_year": 0}})

    def test_missing_instruments_file(self, db_path, temp_dir) -> None:
        with pytest.raises(MissingDataError):
            ProcessingEngine(db_path=db_path,
                             instruments_path=os.path.join(temp_dir, "instruments.json"))

    def test_instruments_file(self, db_path, temp_dir) -> None:
        path = os.path.join(temp_dir, "instruments.json")
        with open(path, "wb") as f:
            f.write(orjson.dumps([{
                "CfiCode": "DBXTXR",
                "InstrumentId": {"symbol": "MERV - XMEV - S31O5 - CI"},
                "PriceConvertionFactor": 0.01,
            }]))

        engine = ProcessingEngine(db_path=db_path, instruments_path=path)

        assert engine.new_mapping().get_instrument_details("S31O5").price_conversion_factor == 0.01


class TestEngineDisplay:
    """Test suite for the display pipeline through the engine."""

    def test_process_csv(self, engine, option_rows, temp_dir) -> None:
        path = write_csv(os.path.join(temp_dir, "ops.csv"), option_rows)

        report = engine.process_csv(path, processed_at=datetime(2025, 10, 17, 18, 0))

        assert report["summary"]["fileName"] == "ops.csv"
        assert report["summary"]["validRowCount"] == 4
        assert report["summary"]["callsRows"] == 2
        assert report["calls"]["operations"][0]["feeAmount"] == pytest.approx(
            2300 * 100 * 0.008 * 1.21)

    def test_missing_csv(self, engine, temp_dir) -> None:
        with pytest.raises(MissingDataError):
            engine.process_csv(os.path.join(temp_dir, "missing.csv"))

    def test_export_report(self, engine, option_rows, temp_dir) -> None:
        report = engine.process_csv(write_csv(os.path.join(temp_dir, "ops.csv"), option_rows))

        out = engine.export_report(report, os.path.join(temp_dir, "report.json"))

        assert orjson.loads(out.read_bytes())["summary"]["validRowCount"] == 4


class TestEngineArbitrage:
    """Test suite for the arbitrage pipeline through the engine."""

    def test_process_arbitrage_rows(self, engine, s31o5_rows, caucion_row) -> None:
        jornada = datetime(2025, 10, 17)

        report = engine.process_arbitrage_rows(s31o5_rows + [caucion_row], jornada)

        assert report["instruments"] == ["PESOS", "S31O5"]
        assert report["summary"]["totalGrupos"] == 2
        assert report["jornada"] == "2025-10-17T00:00:00"
        row = report["rows"][0]
        fees = (130.70 + 130.91) * 61 * 0.0061
        assert row["estado"] == "completo"
        assert row["pnl_trade"] == pytest.approx((130.70 - 130.91) * 61 - fees)
        assert row["pnl_caucion"] == pytest.approx(130.805 * 61 * 0.40 * 3 / 365)

    def test_process_arbitrage_file(self, engine, s31o5_rows, temp_dir) -> None:
        path = write_csv(os.path.join(temp_dir, "arb.csv"), s31o5_rows)

        report = engine.process_arbitrage(path, instrument="S31O5")

        assert [row["instrumento"] for row in report["rows"]] == ["S31O5"]
        assert report["jornada"] is None
