"""
Legacy column fill-in for broker exports.

Older exports name the quantity and price columns differently and leave
the option columns blank. This module fills those gaps before validation
and reports which required columns are missing from the file altogether.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from .models import ProcessingConfiguration
from .tokens import parse_token

REQUIRED_COLUMNS = (
    "order_id",
    "symbol",
    "side",
    "option_type",
    "strike",
    "quantity",
    "price",
)

QUANTITY_SOURCES = ("quantity", "last_qty", "cum_qty")
PRICE_SOURCES = ("price", "last_price", "avg_price", "order_price")
TOKEN_SOURCES = ("security_id", "symbol", "instrument")

_INSTRUMENT_LIKE = re.compile(r"[A-Z]{2,}\d+")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")


@dataclass(frozen=True)
class NormalizationResult:
    """Rows with legacy columns filled in and the columns absent from every row."""
    rows: list[dict[str, Any]]
    missing_columns: list[str]

    def unresolved_columns(self) -> list[str]:
        """Missing columns that no row could fill from another source."""
        return [
            column for column in self.missing_columns
            if all(row.get(column) is None for row in self.rows)
        ]


def normalize_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a numeric cell, accepting comma decimals.

    ``"1.234,5"`` and ``"1,234.5"`` both give 1234.5 and ``"12,5"`` gives
    12.5. Empty or non-numeric cells give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = re.sub(r"\s+", "", normalize_string(value))
    if not text:
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") == 1:
        text = text.replace(",", ".")
    elif "," in text:
        text = text.replace(",", "")

    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def derive_strike(digits: Any) -> Optional[float]:
    """Strike from ticker digits; more than four digits carry one decimal."""
    sanitized = re.sub(r"\D", "", normalize_string(digits))
    if not sanitized:
        return None
    if len(sanitized) > 4:
        return float(f"{sanitized[:-1]}.{sanitized[-1]}")
    return float(sanitized)


def extract_instrument_token(candidate: Any) -> str:
    """Pick the longest underscore segment that looks like a ticker."""
    segments = [s.upper() for s in normalize_string(candidate).split("_")]
    if not segments:
        return ""
    for segment in sorted(segments, key=len, reverse=True):
        if _INSTRUMENT_LIKE.search(segment):
            return _NON_ALNUM.sub("", segment)
    return _NON_ALNUM.sub("", segments[0])


def derive_option_data(row: dict[str, Any],
                       configuration: Optional[ProcessingConfiguration]) -> dict[str, Any]:
    """
    Option type and strike for rows of the active symbol.

    Only tickers written as the active symbol followed by C or V, the strike
    digits and a suffix are recognized.
    """
    active_symbol = configuration.active_symbol if configuration else ""
    if not active_symbol:
        return {}

    candidate = next(
        (value for value in (normalize_string(row.get(k)) for k in TOKEN_SOURCES)
         if active_symbol in value.upper()),
        None,
    )
    if candidate is None:
        return {}

    token = extract_instrument_token(candidate)
    match = re.search(rf"{re.escape(active_symbol)}(C|V)(\d+)([A-Z0-9]+)", token)
    if not match:
        return {}

    side, digits, suffix = match.groups()
    result: dict[str, Any] = {"option_type": "CALL" if side == "C" else "PUT"}
    strike = derive_strike(digits)
    if strike is not None:
        result["strike"] = strike
    if suffix:
        result["matched_suffix"] = suffix
    return result


def derive_token_option_type(row: dict[str, Any]) -> Optional[str]:
    """Option type from the first ticker-like value of the row, if any."""
    for key in TOKEN_SOURCES:
        for part in normalize_string(row.get(key)).split():
            parsed = parse_token(part)
            if parsed is not None:
                return parsed.type.value
    return None


def derive_quantity(row: dict[str, Any]) -> Optional[float]:
    for key in QUANTITY_SOURCES:
        value = parse_number(row.get(key))
        if value is not None and value != 0:
            return value
    return None


def derive_price(row: dict[str, Any]) -> Optional[float]:
    for key in PRICE_SOURCES:
        value = parse_number(row.get(key))
        if value is not None and value > 0:
            return value
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _assign_if_missing(target: dict[str, Any], key: str, value: Any) -> None:
    if _is_blank(target.get(key)) and value is not None:
        target[key] = value


def normalize_operation_rows(rows: list[dict[str, Any]],
                             configuration: Optional[ProcessingConfiguration] = None
                             ) -> NormalizationResult:
    """
    Fill option, quantity and price columns from their legacy sources.

    Args:
        rows: Raw CSV rows
        configuration: Active scope, used for active-symbol ticker parsing

    Returns:
        NormalizationResult with one normalized copy per input row
    """
    if not rows:
        return NormalizationResult(rows=[], missing_columns=list(REQUIRED_COLUMNS))

    present = set()
    for row in rows:
        present.update(column for column in REQUIRED_COLUMNS if column in row)
    missing_columns = [column for column in REQUIRED_COLUMNS if column not in present]

    normalized_rows = []
    for row in rows:
        normalized = dict(row)
        for column in REQUIRED_COLUMNS:
            normalized.setdefault(column, None)

        option_data = derive_option_data(normalized, configuration)
        _assign_if_missing(normalized, "option_type", option_data.get("option_type"))
        _assign_if_missing(normalized, "strike", option_data.get("strike"))
        _assign_if_missing(normalized, "option_type", derive_token_option_type(normalized))
        _assign_if_missing(normalized, "quantity", derive_quantity(normalized))
        _assign_if_missing(normalized, "price", derive_price(normalized))

        normalized_rows.append(normalized)

    return NormalizationResult(rows=normalized_rows, missing_columns=missing_columns)
