"""
Parsing of broker rows into arbitrage trades and cauciones.

Symbols follow the exchange layout ``MERV - XMEV - S31O5 - CI``: the last
segment is the venue (``CI``/``24hs``) or, for cauciones, the tenor
(``MERV - XMEV - PESOS - 3D``). Trades are fee-enriched on their raw CSV
price before the price conversion factor is applied.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..data.models import EnrichedOperation, OptionType
from ..data.normalizer import normalize_string, parse_number
from ..fees.calculator import CategoryRates
from ..fees.enrichment import enrich_operation_with_fee
from ..fees.instrument_mapping import InstrumentMapping
from ..fees.repo_fees import (
    RepoOperation,
    calculate_repo_expense_breakdown,
    normalize_repo_currency,
)
from ..logging import get_logger
from .models import Caucion, CaucionTipo, Lado, Operacion, Venue

logger = get_logger(__name__)

DAYS_PER_YEAR = 365
DATE_FIELDS = ("transact_time", "fecha_hora", "fechaHora", "date")

_TENOR_SEGMENT = re.compile(r"^(\d+)D$", re.IGNORECASE)


@dataclass(frozen=True)
class SymbolParts:
    instrument: str
    venue: Optional[Venue]
    plazo: Optional[int]
    is_caucion: bool


def parse_symbol(symbol: str) -> SymbolParts:
    """
    Split an exchange symbol into instrument, venue and caución tenor.

    A symbol with no venue segment settles on CI.
    """
    if not symbol:
        return SymbolParts("", Venue.CI, None, False)

    parts = [part.strip() for part in symbol.split(" - ")]
    last = parts[-1].upper()
    instrument_index = len(parts) - 2

    tenor = _TENOR_SEGMENT.match(last)
    if tenor:
        venue, plazo, is_caucion = None, int(tenor.group(1)), True
    elif "24" in last:
        venue, plazo, is_caucion = Venue.H24, None, False
    elif last == "CI":
        venue, plazo, is_caucion = Venue.CI, None, False
    else:
        venue, plazo, is_caucion = Venue.CI, None, False
        instrument_index = len(parts) - 1

    if instrument_index >= 0 and parts[instrument_index]:
        instrument = parts[instrument_index]
    else:
        instrument = parts[-1]
    return SymbolParts(instrument, venue, plazo, is_caucion)


def parse_lado(value: Any) -> Lado:
    """``V...`` and ``SELL`` are ventas, anything else is a compra."""
    normalized = normalize_string(value).upper()
    if normalized.startswith("V") or normalized == "SELL":
        return Lado.VENTA
    return Lado.COMPRA


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp such as ``2025-10-17 13:36:13.415000Z``.

    Aware timestamps are converted to naive UTC so trades from different
    sources compare. Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = normalize_string(value)
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _first_value(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _row_date(row: dict[str, Any]) -> Optional[datetime]:
    nested = row.get("raw") if isinstance(row.get("raw"), dict) else {}
    return parse_date(_first_value(row, *DATE_FIELDS) or _first_value(nested, *DATE_FIELDS))


def _row_symbol(row: dict[str, Any]) -> str:
    return normalize_string(_first_value(row, "symbol", "instrumento"))


def _number(row: dict[str, Any], *keys: str) -> float:
    return parse_number(_first_value(row, *keys)) or 0.0


def parse_operations(
    raw_rows: list[dict[str, Any]],
    mapping: Optional[InstrumentMapping] = None,
    effective_rates: Optional[dict[str, CategoryRates]] = None
) -> list[Operacion]:
    """
    Build CI/24hs trades from broker rows.

    Caución rows are skipped; rows with a non-positive quantity or
    price, or without a timestamp, are dropped. When fee rates are given,
    each trade's commissions are the fee on its raw CSV price.

    Args:
        raw_rows: CSV rows
        mapping: Instrument table for price factors and fee categories
        effective_rates: Precomputed fee rates, no commissions without them

    Returns:
        Trades in input order
    """
    mapping = mapping if mapping is not None else InstrumentMapping()
    operations = []
    dropped = 0

    for index, row in enumerate(raw_rows):
        symbol = _row_symbol(row)
        parts = parse_symbol(symbol)
        if parts.is_caucion:
            continue

        details = mapping.details_or_default(symbol, parts.instrument)
        price_conversion_factor = details.price_conversion_factor if details else 1.0
        contract_multiplier = details.contract_multiplier if details else 1.0

        raw_cantidad = _number(row, "cantidad", "quantity", "last_qty")
        raw_precio = _number(row, "precio", "price", "last_price")
        precio = raw_precio * price_conversion_factor
        fecha_hora = _row_date(row)

        if raw_cantidad <= 0 or precio <= 0 or fecha_hora is None:
            dropped += 1
            continue

        order_id = normalize_string(_first_value(row, "order_id", "orderId"))
        # Partial fills share an order id
        row_id = normalize_string(row.get("id")) or (f"{order_id}-{index}" if order_id else f"op-{index}")
        order_id = order_id or row_id
        lado = parse_lado(_first_value(row, "lado", "side"))

        comisiones = 0.0
        fee_breakdown = None
        category = None
        if effective_rates:
            fee_operation = EnrichedOperation(
                id=row_id,
                symbol=parts.instrument,
                expiration="NONE",
                strike=None,
                type=OptionType.UNKNOWN,
                quantity=raw_cantidad,
                price=raw_precio,
                side="SELL" if lado == Lado.VENTA else "BUY",
                order_id=order_id,
                original_symbol=symbol,
                raw=row,
            )
            enriched = enrich_operation_with_fee(fee_operation, mapping, effective_rates)
            comisiones = enriched.fee_amount
            fee_breakdown = enriched.fee_breakdown
            category = enriched.category

        operations.append(Operacion(
            id=row_id,
            order_id=order_id,
            instrumento=parts.instrument,
            lado=lado,
            fecha_hora=fecha_hora,
            cantidad=raw_cantidad,
            precio=precio,
            comisiones=comisiones,
            total=raw_cantidad * precio,
            venue=parts.venue or Venue.CI,
            raw_precio=raw_precio,
            raw_cantidad=raw_cantidad,
            price_conversion_factor=price_conversion_factor,
            contract_multiplier=contract_multiplier,
            fee_breakdown=fee_breakdown,
            category=category,
        ))

    if dropped:
        logger.info("Arbitrage rows dropped", dropped=dropped,
                    reason="non-positive quantity or price, or missing timestamp")
    return operations


def _caucion_fees(caucion: Caucion, repo_fee_config: Optional[dict[str, Any]]) -> Caucion:
    if not repo_fee_config:
        return caucion
    breakdown = calculate_repo_expense_breakdown(
        RepoOperation(
            id=caucion.id,
            role=caucion.tipo.value,
            currency=caucion.currency,
            principal_amount=caucion.monto,
            tna=caucion.tasa,
            tenor_days=caucion.tenor_dias,
        ),
        repo_fee_config,
    )
    if breakdown is None:
        return caucion
    return Caucion(
        id=caucion.id,
        instrumento=caucion.instrumento,
        tipo=caucion.tipo,
        inicio=caucion.inicio,
        fin=caucion.fin,
        monto=caucion.monto,
        tasa=caucion.tasa,
        interes=caucion.interes,
        tenor_dias=caucion.tenor_dias,
        fee_amount=breakdown.total_expenses,
        referencia=caucion.referencia,
        currency=caucion.currency,
        fee_breakdown=breakdown,
    )


def _parse_exchange_caucion(row: dict[str, Any], parts: SymbolParts, index: int) -> Optional[Caucion]:
    inicio = _row_date(row)
    if inicio is None:
        return None

    cantidad = _number(row, "last_qty", "cantidad", "quantity")
    precio = _number(row, "last_price", "precio", "price")
    monto = cantidad * precio
    # The price column of a caución row carries its TNA
    tasa = precio
    plazo = parts.plazo or 0
    caucion_id = normalize_string(row.get("id")) or f"cau-{index}"
    tipo = CaucionTipo.COLOCADORA if parse_lado(_first_value(row, "lado", "side")) == Lado.COMPRA \
        else CaucionTipo.TOMADORA

    return Caucion(
        id=caucion_id,
        instrumento=parts.instrument,
        tipo=tipo,
        inicio=inicio,
        fin=inicio + timedelta(days=plazo),
        monto=monto,
        tasa=tasa,
        interes=monto * (tasa / 100) * (plazo / DAYS_PER_YEAR),
        tenor_dias=plazo,
        referencia=caucion_id,
        currency=normalize_repo_currency(parts.instrument) or "ARS",
    )


def _parse_dedicated_caucion(row: dict[str, Any], index: int) -> Optional[Caucion]:
    inicio = parse_date(_first_value(row, "inicio", "start_date", *DATE_FIELDS))
    if inicio is None:
        return None
    fin = parse_date(_first_value(row, "fin", "end_date")) or inicio
    tipo_value = normalize_string(_first_value(row, "tipo", "type")).lower()
    caucion_id = normalize_string(row.get("id")) or f"cau-{index}"

    return Caucion(
        id=caucion_id,
        instrumento=normalize_string(_first_value(row, "instrumento", "instrument")),
        tipo=CaucionTipo.TOMADORA if tipo_value == CaucionTipo.TOMADORA.value else CaucionTipo.COLOCADORA,
        inicio=inicio,
        fin=fin,
        monto=_number(row, "monto", "amount"),
        tasa=_number(row, "tasa", "rate"),
        interes=_number(row, "interes", "interest"),
        tenor_dias=(fin.date() - inicio.date()).days,
        referencia=normalize_string(_first_value(row, "referencia", "reference")) or None,
        currency=normalize_repo_currency(_first_value(row, "currency", "moneda")) or "ARS",
    )


def parse_cauciones(
    raw_rows: list[dict[str, Any]],
    repo_fee_config: Optional[dict[str, Any]] = None
) -> list[Caucion]:
    """
    Build cauciones from broker rows or dedicated caución records.

    Exchange rows (``... - PESOS - 3D``) take their TNA from the price
    column; a BUY lends cash (colocadora) and a SELL borrows it (tomadora).
    Cauciones without a start date, a positive amount or a positive tenor
    are dropped. With a repo fee configuration each caución carries its
    expense breakdown and total as ``fee_amount``.
    """
    cauciones = []
    for index, row in enumerate(raw_rows):
        parts = parse_symbol(_row_symbol(row))
        if parts.is_caucion and parts.plazo:
            caucion = _parse_exchange_caucion(row, parts, index)
        elif _first_value(row, "monto", "amount", "tasa", "rate") is not None:
            caucion = _parse_dedicated_caucion(row, index)
        else:
            continue

        if caucion is None or caucion.monto <= 0 or caucion.tenor_dias <= 0:
            continue
        cauciones.append(_caucion_fees(caucion, repo_fee_config))
    return cauciones
