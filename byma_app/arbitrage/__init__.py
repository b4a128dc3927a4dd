"""CI/24hs term-arbitrage parsing, aggregation and P&L"""

from .aggregation import (
    aggregate_by_instrumento_plazo,
    filter_grupos_by_instrument,
    get_grupos_summary,
    get_unique_instruments,
)
from .models import Caucion, Estado, GrupoInstrumentoPlazo, Operacion, Patron, ResultadoPatron
from .parsing import parse_cauciones, parse_operations, parse_symbol
from .pnl import build_arbitrage_rows, calculate_pnl

__all__ = [
    "Caucion",
    "Estado",
    "GrupoInstrumentoPlazo",
    "Operacion",
    "Patron",
    "ResultadoPatron",
    "aggregate_by_instrumento_plazo",
    "build_arbitrage_rows",
    "calculate_pnl",
    "filter_grupos_by_instrument",
    "get_grupos_summary",
    "get_unique_instruments",
    "parse_cauciones",
    "parse_operations",
    "parse_symbol",
]
