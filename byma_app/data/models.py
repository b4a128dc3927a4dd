"""
Canonical data models for validated and enriched operations.

This module defines immutable data structures that represent broker
execution rows after validation and symbol enrichment.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Union

from ..config.symbols import SymbolConfig, build_prefix_map

if TYPE_CHECKING:
    from ..fees.repo_fees import RepoExpenseBreakdown


class OptionType(str, Enum):
    """Option side derived from the explicit column or the ticker token."""
    CALL = "CALL"
    PUT = "PUT"
    UNKNOWN = "UNKNOWN"


class Side(str, Enum):
    """Trade direction of an execution row."""
    BUY = "BUY"
    SELL = "SELL"


class ExclusionReason(str, Enum):
    """Named counters for rows dropped by the validator or the consolidator."""
    MISSING_REQUIRED_FIELD = "missingRequiredField"
    INVALID_EVENT_TYPE = "invalidEventType"
    INVALID_STATUS = "invalidStatus"
    INVALID_EXEC_TYPE = "invalidExecType"
    INVALID_SIDE = "invalidSide"
    INVALID_OPTION_TYPE = "invalidOptionType"
    INVALID_STRIKE = "invalidStrike"
    INVALID_QUANTITY = "invalidQuantity"
    INVALID_PRICE = "invalidPrice"
    OUT_OF_SCOPE = "outOfScope"
    ZERO_NET_QUANTITY = "zeroNetQuantity"


VALIDATION_REASONS = tuple(r for r in ExclusionReason if r is not ExclusionReason.ZERO_NET_QUANTITY)


@dataclass(frozen=True)
class ParsedToken:
    """Decomposition of an option ticker such as ``GFGC4478.3O``."""
    symbol: str             # Root symbol, e.g. "GFG"
    type: OptionType        # CALL for "C", PUT for "V"
    strike: float           # Strike literal as a number
    strike_token: str       # Strike literal as written
    expiration: str         # Remainder, "UNKNOWN" when empty


@dataclass(frozen=True)
class FeeBreakdown:
    """Fee components over a gross notional."""
    commission_pct: float
    rights_pct: float
    vat_pct: float
    commission_amount: float
    rights_amount: float
    vat_amount: float
    category: str
    source: str             # "config" or "placeholder"

    def to_dict(self) -> dict[str, Any]:
        return {
            "commissionPct": self.commission_pct,
            "rightsPct": self.rights_pct,
            "vatPct": self.vat_pct,
            "commissionAmount": self.commission_amount,
            "rightsAmount": self.rights_amount,
            "vatAmount": self.vat_amount,
            "category": self.category,
            "source": self.source,
        }


@dataclass(frozen=True)
class OperationMeta:
    """How an enriched operation was resolved."""
    detected_from_token: bool = False
    source_token: Optional[str] = None
    prefix_rule: Optional[str] = None
    strike_decimals: Optional[int] = None


@dataclass(frozen=True)
class ValidatedRow:
    """A raw row that passed every validation check, with sanitized values."""
    order_id: str
    symbol: str
    expiration: str
    security_id: str
    instrument: str
    text: str
    side: Side
    option_type: Optional[OptionType]
    strike: Optional[float]
    quantity: float
    price: float
    status: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def as_row(self) -> dict[str, Any]:
        """Sanitized values in raw-row shape, for the enrichment resolver."""
        row = dict(self.raw)
        row.update({
            "order_id": self.order_id,
            "symbol": self.symbol,
            "expiration": self.expiration,
            "security_id": self.security_id,
            "instrument": self.instrument,
            "text": self.text,
            "side": self.side.value,
            "option_type": self.option_type.value if self.option_type else None,
            "strike": self.strike,
            "quantity": self.quantity,
            "price": self.price,
            "status": self.status,
        })
        return row


@dataclass(frozen=True)
class ValidationResult:
    """Rows kept by the validator and per-reason exclusion counters."""
    operations: list[ValidatedRow]
    exclusions: dict[str, int]

    @property
    def excluded_count(self) -> int:
        return sum(self.exclusions.values())


@dataclass(frozen=True)
class EnrichedOperation:
    """A validated row with resolved symbol, expiration, strike and type."""
    id: str
    symbol: str
    expiration: str
    strike: Optional[float]
    type: OptionType
    quantity: float
    price: float
    side: str
    meta: OperationMeta = field(default_factory=OperationMeta)
    order_id: str = ""
    original_symbol: str = ""
    matched_symbol: str = ""
    status: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
    # Filled by fee enrichment
    gross_notional: float = 0.0
    fee_amount: float = 0.0
    fee_breakdown: Optional[Union[FeeBreakdown, "RepoExpenseBreakdown"]] = None
    category: Optional[str] = None
    cfi_code: Optional[str] = None
    net_settlement: Optional[float] = None

    @property
    def signed_quantity(self) -> float:
        """Quantity with BUY positive and SELL negative."""
        sign = 1 if self.side == Side.BUY.value else -1
        return sign * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "expiration": self.expiration,
            "strike": self.strike,
            "type": self.type.value,
            "quantity": self.quantity,
            "price": self.price,
            "side": self.side,
            "orderId": self.order_id,
            "originalSymbol": self.original_symbol,
            "matchedSymbol": self.matched_symbol,
            "status": self.status,
            "meta": {
                "detectedFromToken": self.meta.detected_from_token,
                "sourceToken": self.meta.source_token,
                "prefixRule": self.meta.prefix_rule,
                "strikeDecimals": self.meta.strike_decimals,
            },
            "grossNotional": self.gross_notional,
            "feeAmount": self.fee_amount,
            "feeBreakdown": self.fee_breakdown.to_dict() if self.fee_breakdown else None,
            "category": self.category,
            "cfiCode": self.cfi_code,
            "netSettlement": self.net_settlement,
        }


@dataclass(frozen=True)
class ProcessingConfiguration:
    """
    Snapshot of the symbol configuration and scope used for one run.

    ``prefix_map`` indexes symbol configurations by ticker prefix. The
    active symbol and expiration restrict which rows the validator keeps.
    """
    prefix_map: dict[str, SymbolConfig] = field(default_factory=dict)
    active_symbol: str = ""
    active_expiration: str = ""
    use_averaging: bool = False

    @classmethod
    def from_symbol_configs(cls, configs, active_symbol: str = "",
                            active_expiration: str = "",
                            use_averaging: bool = False) -> "ProcessingConfiguration":
        return cls(
            prefix_map=build_prefix_map(configs),
            active_symbol=(active_symbol or "").strip().upper(),
            active_expiration=(active_expiration or "").strip().upper(),
            use_averaging=use_averaging,
        )

    def find_symbol_config(self, symbol: str) -> Optional[SymbolConfig]:
        """Look up a configuration by prefix or by canonical symbol."""
        symbol = (symbol or "").strip().upper()
        if not symbol:
            return None
        if symbol in self.prefix_map:
            return self.prefix_map[symbol]
        for config in self.prefix_map.values():
            if config.symbol == symbol:
                return config
        return None

    @property
    def active_suffixes(self) -> tuple[str, ...]:
        """Suffixes of the active expiration, empty when none is configured."""
        if not self.active_symbol or not self.active_expiration:
            return ()
        config = self.find_symbol_config(self.active_symbol)
        if config is None:
            return ()
        return config.suffixes_for(self.active_expiration)
