"""
Aggregation of trades and cauciones by instrument and plazo.

Each instrument gets a single plazo, computed from its earliest trade with
the business calendar. Trades are filed into four legs by venue and side;
cauciones are keyed by their own tenor.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from ..logging import get_logger
from ..utils.business_days import calculate_calendar_days, calculate_ci_to_24hs_plazo
from .models import Caucion, GrupoInstrumentoPlazo, Lado, Operacion, Venue

logger = get_logger(__name__)

ALL_INSTRUMENTS = "all"


def consolidate_partial_fills(operations: Iterable[Operacion]) -> list[Operacion]:
    """
    Collapse duplicate acknowledgements of the same fill.

    Operations of one order that report the same quantity are the same
    fill; only the earliest one is kept. Output follows the first
    appearance of each order, then of each quantity within it.
    """
    orders: dict[str, dict[float, list[Operacion]]] = {}
    for operation in operations:
        fills = orders.setdefault(operation.order_id or "", {})
        fills.setdefault(operation.cantidad, []).append(operation)

    consolidated = []
    removed = 0
    for fills in orders.values():
        for same_quantity in fills.values():
            consolidated.append(min(same_quantity, key=lambda op: op.fecha_hora))
            removed += len(same_quantity) - 1

    if removed:
        logger.info("Duplicate partial fills removed", removed=removed)
    return consolidated


def calculate_weighted_average_tna(cauciones: Iterable[Caucion]) -> float:
    """Σ tasa × monto / Σ monto, 0 without cauciones."""
    total_monto = 0.0
    weighted_sum = 0.0
    for caucion in cauciones:
        total_monto += caucion.monto
        weighted_sum += caucion.tasa * caucion.monto
    if total_monto == 0:
        return 0.0
    return weighted_sum / total_monto


def _instrument_plazos(operations: Iterable[Operacion]) -> dict[str, int]:
    earliest: dict[str, datetime] = {}
    for operation in operations:
        if operation.venue not in (Venue.CI, Venue.H24):
            continue
        current = earliest.get(operation.instrumento)
        if current is None or operation.fecha_hora < current:
            earliest[operation.instrumento] = operation.fecha_hora
    return {instrumento: calculate_ci_to_24hs_plazo(first) for instrumento, first in earliest.items()}


def _leg_for(grupo: GrupoInstrumentoPlazo, operation: Operacion) -> Optional[list[Operacion]]:
    legs = {
        (Venue.CI, Lado.VENTA): grupo.ventas_ci,
        (Venue.H24, Lado.COMPRA): grupo.compras_24h,
        (Venue.CI, Lado.COMPRA): grupo.compras_ci,
        (Venue.H24, Lado.VENTA): grupo.ventas_24h,
    }
    return legs.get((operation.venue, operation.lado))


def aggregate_by_instrumento_plazo(
    operations: list[Operacion],
    cauciones: list[Caucion],
    jornada: Optional[datetime] = None
) -> dict[str, GrupoInstrumentoPlazo]:
    """
    Group trades and cauciones under ``instrumento:plazo`` keys.

    The weighted average TNA is computed over every caución in the input
    and attached to each group holding at least one trade, whether or not
    the cauciones belong to that instrument.

    Args:
        operations: Parsed trades
        cauciones: Parsed cauciones
        jornada: Trading day recorded on each group

    Returns:
        Groups by key, in first-seen order
    """
    consolidated = consolidate_partial_fills(operations)
    plazos = _instrument_plazos(consolidated)
    grupos: dict[str, GrupoInstrumentoPlazo] = {}

    for operation in consolidated:
        plazo = plazos.get(operation.instrumento, 0)
        key = f"{operation.instrumento}:{plazo}"
        grupo = grupos.get(key)
        if grupo is None:
            grupo = grupos[key] = GrupoInstrumentoPlazo(operation.instrumento, plazo, jornada)
        leg = _leg_for(grupo, operation)
        if leg is not None:
            leg.append(operation)

    for caucion in cauciones:
        plazo = calculate_calendar_days(caucion.inicio, caucion.fin)
        key = f"{caucion.instrumento}:{plazo}"
        grupo = grupos.get(key)
        if grupo is None:
            grupo = grupos[key] = GrupoInstrumentoPlazo(caucion.instrumento, plazo, jornada)
        grupo.cauciones.append(caucion)

    avg_tna = calculate_weighted_average_tna(cauciones)
    for grupo in grupos.values():
        if grupo.has_trades():
            grupo.avg_tna = avg_tna

    logger.info("Arbitrage groups aggregated", grupos=len(grupos),
                operations=len(consolidated), cauciones=len(cauciones), avg_tna=avg_tna)
    return grupos


def filter_grupos_by_instrument(grupos: dict[str, GrupoInstrumentoPlazo],
                                instrumento: Optional[str]) -> list[GrupoInstrumentoPlazo]:
    """Groups of one instrument; every group for None or ``"all"``."""
    if not instrumento or instrumento == ALL_INSTRUMENTS:
        return list(grupos.values())
    return [grupo for grupo in grupos.values() if grupo.instrumento == instrumento]


def get_unique_instruments(grupos: dict[str, GrupoInstrumentoPlazo]) -> list[str]:
    return sorted({grupo.instrumento for grupo in grupos.values()})


def get_grupos_summary(grupos: dict[str, GrupoInstrumentoPlazo]) -> dict[str, Any]:
    return {
        "totalGrupos": len(grupos),
        "totalInstruments": len(get_unique_instruments(grupos)),
        "totalOperations": sum(grupo.operation_count for grupo in grupos.values()),
        "totalCauciones": sum(len(grupo.cauciones) for grupo in grupos.values()),
    }
