#!/usr/bin/env python3
"""
Process a broker CSV export from the command line.

Usage:
    python scripts/process_operations.py display operaciones.csv --symbol GGAL --expiration OCT
    python scripts/process_operations.py arbitrage operaciones.csv --instrument S31O5
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from byma_app.engine import ProcessingEngine
from byma_app.errors import DataQualityError, SystemFailureError
from byma_app.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BYMA operations processor")
    parser.add_argument("mode", choices=("display", "arbitrage"))
    parser.add_argument("csv_path", type=Path)
    parser.add_argument("--config-dir", type=Path, default=None)
    parser.add_argument("--db", default="symbols.db", help="Symbol configuration store")
    parser.add_argument("--instruments", type=Path, default=None, help="Instrument table JSON")
    parser.add_argument("--symbol", default=None)
    parser.add_argument("--expiration", default=None)
    parser.add_argument("--averaging", action="store_true")
    parser.add_argument("--instrument", default=None, help="Arbitrage instrument filter")
    parser.add_argument("--jornada", default=None, help="Trading day, YYYY-MM-DD")
    parser.add_argument("--output", type=Path, default=None, help="Write the report as JSON")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--json-logs", action="store_true")
    return parser


def main():
    args = build_parser().parse_args()
    configure_logging(level=args.log_level, format_json=args.json_logs)

    try:
        engine = ProcessingEngine(config_dir=args.config_dir, db_path=args.db,
                                  instruments_path=args.instruments)
        if args.mode == "display":
            report = engine.process_csv(args.csv_path, active_symbol=args.symbol,
                                        active_expiration=args.expiration,
                                        use_averaging=args.averaging or None)
            summary = report["summary"]
            print(f"📊 {summary['fileName']}: {summary['callsRows']} calls, "
                  f"{summary['putsRows']} puts ({report['activeView']} view)")
            print(f"   {summary['validRowCount']}/{summary['rawRowCount']} rows valid, "
                  f"{summary['excludedRowCount']} excluded")
            for warning in summary["warnings"]:
                print(f"⚠️  {warning}")
        else:
            jornada = datetime.fromisoformat(args.jornada) if args.jornada else None
            report = engine.process_arbitrage(args.csv_path, jornada=jornada,
                                              instrument=args.instrument)
            for row in report["rows"]:
                print(f"💹 {row['id']}: cantidad {row['cantidad']}, "
                      f"P&L trade {row['pnl_trade']:.2f}, caución {row['pnl_caucion']:.2f}, "
                      f"total {row['pnl_total']:.2f} [{row['estado']}]")
            if not report["rows"]:
                print("No matched arbitrage patterns")
    except (DataQualityError, SystemFailureError) as e:
        print(f"❌ {e}")
        sys.exit(1)

    if args.output:
        ProcessingEngine.export_report(report, args.output)
        print(f"💾 Report written to {args.output}")


if __name__ == "__main__":
    main()
