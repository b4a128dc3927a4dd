"""
P&L engine for CI/24hs term arbitrage.

Two patterns are evaluated per group. Selling CI and buying 24hs leaves
cash to lend for the plazo (colocadora cauciones, interest earned); buying
CI and selling 24hs needs cash borrowed for the plazo (tomadora
cauciones, interest paid).
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config.defaults import ArbitrageParams
from ..logging import get_logger
from .models import (
    Caucion,
    CaucionTipo,
    Estado,
    GrupoInstrumentoPlazo,
    Operacion,
    Patron,
    PatronBreakdown,
    ResultadoPatron,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PatternLegs:
    """Which legs of a group form a pattern, and how its financing is signed."""
    patron: Patron
    sell_leg: Callable[[GrupoInstrumentoPlazo], list[Operacion]]
    buy_leg: Callable[[GrupoInstrumentoPlazo], list[Operacion]]
    sell_label: str
    buy_label: str
    caucion_tipo: CaucionTipo
    lends: bool


PATTERNS = (
    PatternLegs(
        patron=Patron.VENTA_CI_COMPRA_24H,
        sell_leg=lambda grupo: grupo.ventas_ci,
        buy_leg=lambda grupo: grupo.compras_24h,
        sell_label="ventaCI",
        buy_label="compra24h",
        caucion_tipo=CaucionTipo.COLOCADORA,
        lends=True,
    ),
    PatternLegs(
        patron=Patron.COMPRA_CI_VENTA_24H,
        sell_leg=lambda grupo: grupo.ventas_24h,
        buy_leg=lambda grupo: grupo.compras_ci,
        sell_label="venta24h",
        buy_label="compraCI",
        caucion_tipo=CaucionTipo.TOMADORA,
        lends=False,
    ),
)


def sum_quantity(operations: list[Operacion]) -> float:
    return sum(op.cantidad for op in operations)


def sum_commissions(operations: list[Operacion]) -> float:
    return sum(op.comisiones for op in operations)


def weighted_average_price(operations: list[Operacion]) -> float:
    """Quantity-weighted average of the normalized price."""
    total = sum_quantity(operations)
    if not operations or total == 0:
        return 0.0
    return sum(op.precio * op.cantidad for op in operations) / total


def weighted_average_raw_price(operations: list[Operacion]) -> float:
    """Quantity-weighted average of the CSV price, for display."""
    total = sum(op.raw_cantidad or op.cantidad for op in operations)
    if not operations or total == 0:
        return 0.0
    return sum((op.raw_precio or op.precio) * (op.raw_cantidad or op.cantidad)
               for op in operations) / total


def calculate_caucion_pnl(cauciones: list[Caucion], matched_qty: float) -> float:
    """
    Interest of the first linked caución, scaled to the matched quantity.

    Positive for a colocadora, negative for a tomadora.
    """
    if not cauciones:
        return 0.0
    caucion = cauciones[0]
    interest = caucion.interes * matched_qty / caucion.monto
    return interest if caucion.tipo == CaucionTipo.COLOCADORA else -interest


def _breakdown(avg_price: float, avg_raw_price: float, matched_qty: float,
               fees: float, quantity: float, decimals: int) -> PatronBreakdown:
    return PatronBreakdown(
        total_value=round(avg_price * matched_qty, decimals),
        avg_price=round(avg_raw_price, decimals),
        total_fees=round(fees, decimals),
        quantity=quantity,
    )


def calculate_pattern(grupo: GrupoInstrumentoPlazo, legs: PatternLegs,
                      params: Optional[ArbitrageParams] = None) -> Optional[ResultadoPatron]:
    """
    P&L of one pattern in a group, None when the group has neither leg.

    Trade P&L is the price difference on the matched quantity, less each
    side's commissions scaled by the share of that side that matched.
    """
    params = params or ArbitrageParams()
    sells = legs.sell_leg(grupo)
    buys = legs.buy_leg(grupo)
    if not sells and not buys:
        return None

    total_sells = sum_quantity(sells)
    total_buys = sum_quantity(buys)
    matched_qty = min(total_sells, total_buys)
    # CI leg first
    operations = tuple(sells + buys) if legs.lends else tuple(buys + sells)

    if matched_qty == 0:
        return ResultadoPatron(
            patron=legs.patron,
            matched_qty=matched_qty,
            estado=Estado.SIN_CONTRAPARTE,
            operations=operations,
        )

    avg_sell = weighted_average_price(sells)
    avg_buy = weighted_average_price(buys)
    precio_promedio = (avg_sell + avg_buy) / 2

    sell_fees = sum_commissions(sells) * (matched_qty / total_sells if total_sells > 0 else 0.0)
    buy_fees = sum_commissions(buys) * (matched_qty / total_buys if total_buys > 0 else 0.0)
    pnl_trade = (avg_sell - avg_buy) * matched_qty - (sell_fees + buy_fees)

    decimals = params.breakdown_decimals
    breakdowns = {
        legs.sell_label: _breakdown(avg_sell, weighted_average_raw_price(sells), matched_qty,
                                    sell_fees, total_sells, decimals),
        legs.buy_label: _breakdown(avg_buy, weighted_average_raw_price(buys), matched_qty,
                                   buy_fees, total_buys, decimals),
    }

    avg_tna = grupo.avg_tna or 0.0
    cauciones = [c for c in grupo.cauciones if c.tipo == legs.caucion_tipo]
    balanced = total_sells == total_buys

    if avg_tna > 0 and grupo.plazo > 0:
        monto = precio_promedio * matched_qty
        interest = monto * (avg_tna / 100) * (grupo.plazo / params.days_per_year)
        caucion_fees = sum(c.fee_amount or 0.0 for c in cauciones)
        pnl_caucion = interest - caucion_fees if legs.lends else -(interest + caucion_fees)
        estado = Estado.COMPLETO if balanced else Estado.CANTIDADES_DESBALANCEADAS
    elif cauciones:
        pnl_caucion = calculate_caucion_pnl(cauciones, matched_qty)
        estado = Estado.COMPLETO if balanced else Estado.CANTIDADES_DESBALANCEADAS
    else:
        pnl_caucion = 0.0
        estado = Estado.MATCHED_SIN_CAUCION

    return ResultadoPatron(
        patron=legs.patron,
        matched_qty=matched_qty,
        precio_promedio=precio_promedio,
        pnl_trade=pnl_trade,
        pnl_caucion=pnl_caucion,
        pnl_total=pnl_trade + pnl_caucion,
        estado=estado,
        operations=operations,
        cauciones=tuple(cauciones),
        avg_tna=avg_tna,
        breakdowns=breakdowns,
    )


def calculate_pnl(grupo: GrupoInstrumentoPlazo,
                  params: Optional[ArbitrageParams] = None) -> list[ResultadoPatron]:
    """Results for both patterns, omitting a pattern with no legs at all."""
    resultados = []
    for legs in PATTERNS:
        resultado = calculate_pattern(grupo, legs, params)
        if resultado is not None:
            resultados.append(resultado)
    return resultados


def build_arbitrage_rows(grupos: list[GrupoInstrumentoPlazo],
                         params: Optional[ArbitrageParams] = None) -> list[dict[str, Any]]:
    """
    Report rows for every matched pattern.

    Row ids are ``instrumento-plazo-patron``; patterns with no matched
    quantity are left out.
    """
    rows = []
    for grupo in grupos:
        for resultado in calculate_pnl(grupo, params):
            if resultado.matched_qty <= 0:
                continue
            rows.append({
                "id": f"{grupo.instrumento}-{grupo.plazo}-{resultado.patron.value}",
                "instrumento": grupo.instrumento,
                "plazo": grupo.plazo,
                "patron": resultado.patron.value,
                "cantidad": resultado.matched_qty,
                "pnl_trade": resultado.pnl_trade,
                "pnl_caucion": resultado.pnl_caucion,
                "pnl_total": resultado.pnl_total,
                "estado": resultado.estado.value,
                "operations": [op.to_dict() for op in resultado.operations],
                "cauciones": [c.to_dict() for c in resultado.cauciones],
                "avgTNA": resultado.avg_tna,
                "breakdowns": {label: b.to_dict() for label, b in resultado.breakdowns.items()},
            })
    logger.info("Arbitrage rows built", grupos=len(grupos), rows=len(rows))
    return rows
