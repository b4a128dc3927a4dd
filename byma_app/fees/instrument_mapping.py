"""
Instrument table lookups for fee categories and price factors.

The exchange instrument table (InstrumentsWithDetails JSON) gives each
instrument a CFI code, a price conversion factor and a contract multiplier.
An InstrumentMapping holds the table for one run together with the set of
unknown codes already reported, so repeated misses are logged once.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import orjson

from ..errors import MalformedDataError, MissingDataError, UnknownInstrumentError
from ..logging import get_fee_logger
from ..logging.config import log_unknown_cfi_code

logger = get_fee_logger(__name__)

FALLBACK_CATEGORY = "bonds"

# Checked in order; the first pattern that matches wins
CFI_PATTERNS = (
    ("option", re.compile(r"^O[CP]")),
    ("accionCedear", re.compile(r"^E")),
    ("letra", re.compile(r"^(DT|DY|DB)")),
    ("bonds", re.compile(r"^D(?![TY])")),
    ("caucion", re.compile(r"^(FR|RP)")),
)

_COMPONENT_SPLIT = re.compile(r"[\s-]+")


@dataclass(frozen=True)
class InstrumentDetails:
    """Fee-relevant attributes of one instrument."""
    cfi_code: Optional[str]
    price_conversion_factor: float = 1.0
    contract_multiplier: float = 1.0
    currency: Optional[str] = None
    display_name: str = ""


def classify_cfi_code(cfi_code: str) -> Optional[str]:
    """Category for a CFI code by pattern, None when no pattern matches."""
    for category, pattern in CFI_PATTERNS:
        if pattern.match(cfi_code):
            return category
    return None


def _as_number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


class InstrumentMapping:
    """CFI code categories and instrument details for one processing run."""

    def __init__(self, instruments: Optional[Iterable[dict[str, Any]]] = None):
        """
        Build the lookup tables.

        Args:
            instruments: Parsed instrument records (``CfiCode``,
                ``InstrumentId.symbol``, ``PriceConvertionFactor``,
                ``ContractMultiplier``, ``RoundLot``, ``Currency``)
        """
        self.cfi_categories: dict[str, str] = {}
        self.details: dict[str, InstrumentDetails] = {}
        self.unknown_cfi_codes: set[str] = set()
        self.missing_symbols: set[str] = set()

        for record in instruments or []:
            if isinstance(record, dict):
                self._add_record(record)

        logger.info("Instrument mapping built",
                    total_codes=len(self.cfi_categories),
                    total_symbols=len(self.details))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InstrumentMapping":
        """
        Load the instrument table from a JSON file.

        Raises:
            MissingDataError: If the file does not exist
            MalformedDataError: If the file is not a JSON list
        """
        path = Path(path)
        if not path.exists():
            raise MissingDataError(f"Instrument file not found: {path}",
                                   data_type="instruments")
        try:
            data = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as exc:
            raise MalformedDataError(f"Invalid instrument JSON: {exc}",
                                     expected_format="JSON list") from exc
        if not isinstance(data, list):
            raise MalformedDataError("Instrument JSON must be a list",
                                     raw_data=str(type(data)),
                                     expected_format="JSON list")
        return cls(data)

    def _add_record(self, record: dict[str, Any]) -> None:
        cfi_code = record.get("CfiCode")
        if isinstance(cfi_code, str) and cfi_code:
            self.cfi_categories[cfi_code] = classify_cfi_code(cfi_code) or FALLBACK_CATEGORY

        symbol = (record.get("InstrumentId") or {}).get("symbol")
        if not symbol:
            return

        contract_multiplier = _as_number(record.get("ContractMultiplier"), 1.0)
        round_lot = _as_number(record.get("RoundLot"), 1.0)
        # Options quote per unit and trade in lots
        if contract_multiplier == 1 and round_lot > 1:
            contract_multiplier = round_lot

        self.details[symbol] = InstrumentDetails(
            cfi_code=cfi_code or None,
            price_conversion_factor=_as_number(record.get("PriceConvertionFactor"), 1.0),
            contract_multiplier=contract_multiplier,
            currency=record.get("Currency"),
            display_name=symbol,
        )

    def resolve_cfi_category(self, cfi_code: str) -> str:
        """
        Fee category for a CFI code.

        Unrecognized codes fall back to bonds; each distinct code is logged
        once per mapping.
        """
        category = self.cfi_categories.get(cfi_code) or classify_cfi_code(cfi_code or "")
        if category:
            return category

        if cfi_code not in self.unknown_cfi_codes:
            self.unknown_cfi_codes.add(cfi_code)
            log_unknown_cfi_code(logger, cfi_code, FALLBACK_CATEGORY)
        return FALLBACK_CATEGORY

    def get_instrument_details(self, symbol: str) -> Optional[InstrumentDetails]:
        """
        Details by exact symbol, then by component match.

        ``GFGC50131O`` matches ``MERV - XMEV - GFGC50131O - 24hs`` because it
        is one of the components of the full symbol.
        """
        if not symbol:
            return None
        exact = self.details.get(symbol)
        if exact is not None:
            return exact

        for full_symbol, details in self.details.items():
            components = [c for c in _COMPONENT_SPLIT.split(full_symbol) if c]
            if symbol in components:
                return details
        return None

    def require_instrument_details(self, *candidates: str) -> InstrumentDetails:
        """
        Details for the first candidate symbol found.

        Raises:
            UnknownInstrumentError: If no candidate is in the table
        """
        for candidate in candidates:
            details = self.get_instrument_details(candidate)
            if details is not None:
                return details
        key = next((c for c in candidates if c), "")
        raise UnknownInstrumentError(
            f"No instrument details for {key!r}",
            key=key,
            fallback_value="price factor 1",
        )

    def details_or_default(self, *candidates: str) -> Optional[InstrumentDetails]:
        """
        Like require_instrument_details, but a miss returns None.

        Each distinct missing symbol is logged once per mapping.
        """
        try:
            return self.require_instrument_details(*candidates)
        except UnknownInstrumentError as exc:
            if exc.key not in self.missing_symbols:
                self.missing_symbols.add(exc.key)
                logger.warning("Missing instrument details, using defaults",
                               symbol=exc.key, fallback=exc.fallback_value)
            return None

    def log_summary(self, total_rows: int) -> None:
        """Log the fee processing summary for a run."""
        logger.info("Fee processing summary",
                    total_rows=total_rows,
                    unknown_cfi_codes=len(self.unknown_cfi_codes),
                    missing_symbols=len(self.missing_symbols))
