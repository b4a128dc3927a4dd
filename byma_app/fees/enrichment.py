"""
Fee enrichment for processed operations.

Attaches gross notional, fee amount and fee breakdown to each enriched
operation. Cauciones get the repo expense breakdown instead of the
category fee when their currency and role can be resolved.
"""

import dataclasses
from typing import Any, Iterable, Optional

from ..data.models import EnrichedOperation, OptionType
from ..data.normalizer import normalize_string, parse_number
from ..logging import get_fee_logger
from .calculator import CategoryRates, calculate_fee
from .instrument_mapping import InstrumentDetails, InstrumentMapping
from .repo_fees import (
    COLOCADORA,
    TOMADORA,
    RepoExpenseBreakdown,
    RepoOperation,
    calculate_repo_expense_breakdown,
    is_repo_cfi_code,
    normalize_repo_currency,
    parse_tenor_days,
)

logger = get_fee_logger(__name__)

OPTION_CONTRACT_MULTIPLIER = 100.0

_REPO_HINTS = ("CAUCION", "CAUCIÓN", "REPO")
_COLOCADORA_ROLES = frozenset({"colocadora", "colocador", "lender", "sell", "seller", "venta", "vende"})
_TOMADORA_ROLES = frozenset({"tomadora", "tomador", "borrower", "buy", "buyer", "compra", "comprarepo"})

CURRENCY_KEYS = ("repo_currency", "currency", "currency_id", "settlement_currency")
ROLE_KEYS = ("repo_role", "role", "participant_role")
PRINCIPAL_KEYS = ("principal_amount", "principal", "capital", "last_qty")
BASE_AMOUNT_KEYS = ("base_amount", "monto_base")
TNA_KEYS = ("price_tna", "tna", "tasa_tna", "repo_rate")
TENOR_KEYS = ("tenor_days", "tenor", "plazo_dias", "days")
DISPLAY_NAME_KEYS = ("instrument_description", "instrument_name", "instrument", "description")


def _first_text(row: dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = normalize_string(row.get(key))
        if value:
            return value
    return None


def _first_number(row: dict[str, Any], keys: Iterable[str]) -> Optional[float]:
    for key in keys:
        value = parse_number(row.get(key))
        if value is not None:
            return value
    return None


def map_side_to_role(side: str) -> Optional[str]:
    """A repo bought is borrowed money (tomadora), a repo sold is lent (colocadora)."""
    side = (side or "").strip().upper()
    if side == "BUY":
        return TOMADORA
    if side == "SELL":
        return COLOCADORA
    return None


def normalize_repo_role(raw_role: Optional[str]) -> Optional[str]:
    role = (raw_role or "").strip().lower()
    if role in _COLOCADORA_ROLES:
        return COLOCADORA
    if role in _TOMADORA_ROLES:
        return TOMADORA
    return None


def infer_currency_from_labels(labels: Iterable[Optional[str]]) -> Optional[str]:
    for label in labels:
        text = (label or "").strip().upper()
        if not text:
            continue
        if "PESO" in text or "ARS" in text:
            return "ARS"
        if any(marker in text for marker in ("DOLAR", "DÓLAR", "USD", "U$S", "US$")):
            return "USD"
    return None


def extract_repo_operation(operation: EnrichedOperation,
                           details: Optional[InstrumentDetails]) -> Optional[RepoOperation]:
    """
    Repo calculation input for a caución row, None for anything else.

    A row is a caución when its CFI code starts with RP/FR, or when its
    labels mention a caución or repo. Rows whose currency or role cannot
    be resolved are left to the category fee.
    """
    row = operation.raw or {}
    display_name = next((name for name in (
        _first_text(row, DISPLAY_NAME_KEYS),
        operation.original_symbol,
        operation.symbol,
        details.display_name if details else None,
    ) if name), "")

    cfi_code = ((details.cfi_code if details else None)
                or operation.cfi_code
                or _first_text(row, ("cfi_code", "cfiCode", "CfiCode"))
                or "").upper()
    if not is_repo_cfi_code(cfi_code):
        labels = (display_name, _first_text(row, ("security_description", "description")))
        if not any(hint in (label or "").upper() for label in labels for hint in _REPO_HINTS):
            return None
        cfi_code = cfi_code or "RP-UNKNOWN"

    currency = (normalize_repo_currency(_first_text(row, CURRENCY_KEYS))
                or normalize_repo_currency(details.currency if details else None)
                or infer_currency_from_labels((display_name, operation.original_symbol, operation.symbol)))
    role = normalize_repo_role(_first_text(row, ROLE_KEYS)) or map_side_to_role(operation.side)
    if not currency or not role:
        return None

    principal = _first_number(row, PRINCIPAL_KEYS)
    if principal is None:
        principal = abs(operation.quantity)
    tna = _first_number(row, TNA_KEYS)
    if tna is None:
        tna = operation.price
    tenor = _first_number(row, TENOR_KEYS)

    return RepoOperation(
        id=operation.id or operation.order_id or None,
        role=role,
        currency=currency,
        principal_amount=principal,
        tna=tna,
        tenor_days=int(tenor) if tenor and tenor > 0 else parse_tenor_days(display_name),
        base_amount=_first_number(row, BASE_AMOUNT_KEYS) or 0.0,
        cfi_code=cfi_code,
        display_name=display_name,
    )


def enrich_operation_with_fee(operation: EnrichedOperation,
                              mapping: InstrumentMapping,
                              effective_rates: dict[str, CategoryRates],
                              caucion_enabled: bool = False,
                              repo_fee_config: Optional[dict[str, Any]] = None
                              ) -> EnrichedOperation:
    """
    Return a copy of the operation with its fee fields filled.

    ``gross_notional = |quantity| × contract_multiplier × price ×
    price_conversion_factor``; the multiplier defaults to 100 for options
    and 1 otherwise when the instrument table has no entry.
    """
    symbol = operation.original_symbol or operation.symbol
    details = mapping.details_or_default(symbol, operation.symbol)

    cfi_code = (details.cfi_code if details else None) or _first_text(
        operation.raw or {}, ("cfi_code", "cfiCode", "CfiCode"))
    if cfi_code:
        category = mapping.resolve_cfi_category(cfi_code)
    elif operation.type in (OptionType.CALL, OptionType.PUT):
        category = "option"
    else:
        category = "bonds"

    price_conversion_factor = details.price_conversion_factor if details else 1.0
    if details is not None:
        contract_multiplier = details.contract_multiplier
    else:
        contract_multiplier = OPTION_CONTRACT_MULTIPLIER if category == "option" else 1.0

    gross_notional = abs(operation.quantity) * contract_multiplier * operation.price * price_conversion_factor
    result = calculate_fee(gross_notional, category, effective_rates, caucion_enabled)

    repo_breakdown: Optional[RepoExpenseBreakdown] = None
    if repo_fee_config:
        repo_operation = extract_repo_operation(operation, details)
        if repo_operation is not None:
            repo_breakdown = calculate_repo_expense_breakdown(repo_operation, repo_fee_config)

    if repo_breakdown is not None:
        return dataclasses.replace(
            operation,
            gross_notional=gross_notional,
            fee_amount=repo_breakdown.total_expenses,
            fee_breakdown=repo_breakdown,
            category="caucion",
            cfi_code=repo_operation.cfi_code,
            net_settlement=repo_breakdown.net_settlement,
        )

    return dataclasses.replace(
        operation,
        gross_notional=gross_notional,
        fee_amount=result.fee_amount,
        fee_breakdown=result.fee_breakdown,
        category=category,
        cfi_code=cfi_code or None,
    )


def enrich_operations_with_fees(operations: list[EnrichedOperation],
                                mapping: InstrumentMapping,
                                effective_rates: dict[str, CategoryRates],
                                caucion_enabled: bool = False,
                                repo_fee_config: Optional[dict[str, Any]] = None
                                ) -> list[EnrichedOperation]:
    """Enrich every operation and log the run's fee summary."""
    if not operations:
        return []

    enriched = [
        enrich_operation_with_fee(op, mapping, effective_rates, caucion_enabled, repo_fee_config)
        for op in operations
    ]
    mapping.log_summary(len(enriched))
    logger.debug("Fee enrichment complete",
                 total_fees=sum(op.fee_amount for op in enriched),
                 repo_rows=sum(1 for op in enriched if op.category == "caucion"))
    return enriched
