"""
Row validation for broker execution exports.

Each row goes through a fixed sequence of checks. The first failing check
names the exclusion reason, the row is dropped and the counter for that
reason is incremented. Only a file missing its structural columns raises.
"""

import re
from typing import Any, Optional

from ..errors import MissingColumnsError
from .models import (
    ExclusionReason,
    OptionType,
    ProcessingConfiguration,
    Side,
    ValidatedRow,
    ValidationResult,
    VALIDATION_REASONS,
)
from .normalizer import normalize_string, parse_number

REQUIRED_COLUMNS = ("order_id", "side", "quantity", "price")

EXECUTION_EVENT = "execution_report"

STATUS_NORMALIZATION = {
    "fully_executed": "fully_executed",
    "partially_executed": "partially_executed",
    "filled": "fully_executed",
    "partial_fill": "partially_executed",
    "ejecutada": "fully_executed",
    "ejecutada.": "fully_executed",
    "parcialmente ejecutada": "partially_executed",
    "parcialmente ejecutado": "partially_executed",
    "parcialmente ejecutada.": "partially_executed",
}

ALLOWED_STATUSES = frozenset({"fully_executed", "partially_executed"})
ALLOWED_EXEC_TYPES = frozenset({"F"})

_SCOPE_TOKEN = re.compile(r"[^A-Z0-9.]")


def normalize_status(raw_status: Any) -> str:
    """Map broker status spellings to fully_executed/partially_executed."""
    status = normalize_string(raw_status).lower()
    return STATUS_NORMALIZATION.get(status, status)


def _first_present(row: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def ensure_required_columns(rows: list[dict[str, Any]]) -> None:
    """
    Check the structural columns on the first row.

    Raises:
        MissingColumnsError: If any required column is absent
    """
    if not rows:
        return
    sample = rows[0] or {}
    missing = [column for column in REQUIRED_COLUMNS if column not in sample]
    if missing:
        raise MissingColumnsError(
            f"Missing required columns: {', '.join(missing)}",
            missing_columns=missing,
        )


class RowValidator:
    """Validates execution rows against the active processing scope."""

    def __init__(self, configuration: Optional[ProcessingConfiguration] = None):
        """
        Initialize validator with configuration.

        Args:
            configuration: Active symbol/expiration scope; no scope filtering without one
        """
        self.configuration = configuration or ProcessingConfiguration()
        self.active_symbol = self.configuration.active_symbol
        self.scope_prefixes = self._scope_prefixes()
        self.scope_suffixes = self.configuration.active_suffixes

    def _scope_prefixes(self) -> tuple[str, ...]:
        if not self.active_symbol:
            return ()
        prefixes = [self.active_symbol]
        symbol_config = self.configuration.find_symbol_config(self.active_symbol)
        if symbol_config is not None:
            prefixes.extend(p for p in symbol_config.prefixes if p not in prefixes)
        return tuple(prefixes)

    def validate_row(self, row: dict[str, Any]) -> tuple[Optional[ValidatedRow], Optional[ExclusionReason]]:
        """
        Validate one row.

        Returns:
            (ValidatedRow, None) when the row is kept, (None, reason) otherwise
        """
        if any(_is_blank(row.get(column)) for column in REQUIRED_COLUMNS):
            return None, ExclusionReason.MISSING_REQUIRED_FIELD

        event_type = normalize_string(_first_present(row, "event_type", "event_subtype"))
        if event_type and event_type.lower() != EXECUTION_EVENT:
            return None, ExclusionReason.INVALID_EVENT_TYPE

        status = normalize_status(_first_present(row, "status", "ord_status", "exec_status"))
        if status and status not in ALLOWED_STATUSES:
            return None, ExclusionReason.INVALID_STATUS

        exec_type = normalize_string(
            _first_present(row, "exec_type", "execution_type", "execType", "executionType")
        ).upper()
        if exec_type and exec_type not in ALLOWED_EXEC_TYPES:
            return None, ExclusionReason.INVALID_EXEC_TYPE

        side = normalize_string(row.get("side")).upper()
        if side not in (Side.BUY.value, Side.SELL.value):
            return None, ExclusionReason.INVALID_SIDE

        option_type = normalize_string(row.get("option_type")).upper()
        if option_type not in (OptionType.CALL.value, OptionType.PUT.value):
            return None, ExclusionReason.INVALID_OPTION_TYPE

        strike = parse_number(row.get("strike"))
        if not _is_blank(row.get("strike")) and strike is None:
            return None, ExclusionReason.INVALID_STRIKE

        quantity = parse_number(row.get("quantity"))
        if quantity is None or quantity == 0:
            return None, ExclusionReason.INVALID_QUANTITY

        price = parse_number(row.get("price"))
        if price is None or price <= 0:
            return None, ExclusionReason.INVALID_PRICE

        if not self.in_scope(row):
            return None, ExclusionReason.OUT_OF_SCOPE

        return ValidatedRow(
            order_id=normalize_string(row.get("order_id")),
            symbol=normalize_string(row.get("symbol")),
            expiration=normalize_string(_first_present(row, "expiration", "expire_date")),
            security_id=normalize_string(_first_present(row, "security_id", "securityId")),
            instrument=normalize_string(row.get("instrument")),
            text=normalize_string(row.get("text")),
            side=Side(side),
            option_type=OptionType(option_type),
            strike=strike,
            quantity=quantity,
            price=price,
            status=status,
            raw=row,
        ), None

    def in_scope(self, row: dict[str, Any]) -> bool:
        """
        True when the row belongs to the active symbol and expiration.

        A candidate ticker must start with the active symbol (or one of its
        configured prefixes). With expiration suffixes configured, what is
        left after the prefix and an optional C/V marker must start or end
        with one of them.
        """
        if not self.scope_prefixes:
            return True

        for key in ("security_id", "symbol", "instrument"):
            text = normalize_string(row.get(key)).upper()
            if not text:
                continue
            candidate = _SCOPE_TOKEN.sub("", text.split()[0])
            for prefix in self.scope_prefixes:
                if not candidate.startswith(prefix):
                    continue
                if not self.scope_suffixes:
                    return True
                remainder = candidate[len(prefix):]
                if remainder[:1] in ("C", "V"):
                    remainder = remainder[1:]
                if any(remainder.startswith(s) or remainder.endswith(s)
                       for s in self.scope_suffixes):
                    return True
        return False

    def validate_rows(self, rows: list[dict[str, Any]]) -> ValidationResult:
        """
        Validate every row and count exclusions by reason.

        Raises:
            MissingColumnsError: If the first row lacks a structural column
        """
        ensure_required_columns(rows)

        exclusions = {reason.value: 0 for reason in VALIDATION_REASONS}
        operations = []
        for row in rows:
            validated, reason = self.validate_row(row)
            if reason is not None:
                exclusions[reason.value] += 1
                continue
            operations.append(validated)

        return ValidationResult(operations=operations, exclusions=exclusions)


def validate_and_filter_rows(rows: list[dict[str, Any]],
                             configuration: Optional[ProcessingConfiguration] = None
                             ) -> ValidationResult:
    """Validate rows with a fresh RowValidator."""
    return RowValidator(configuration).validate_rows(rows)
