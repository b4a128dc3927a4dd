"""
Consolidation of enriched operations into positions.

Operations are grouped either per order (raw view) or per symbol, type
and strike across orders (averaged view). Each group becomes one position
with its signed net quantity and a quantity-weighted average price.
Groups that net to zero are dropped and counted.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..data.models import EnrichedOperation, ExclusionReason, FeeBreakdown, OptionType
from ..fees.calculator import FALLBACK_CATEGORY, CategoryRates, aggregate_fee, rescale_breakdown

AVERAGE_PRICE_DECIMALS = 4

RAW_VIEW = "raw"
AVERAGED_VIEW = "averaged"


@dataclass(frozen=True)
class ConsolidatedPosition:
    """Net position of one group of operations."""
    original_symbol: str
    matched_symbol: str
    option_type: OptionType
    strike: Optional[float]
    total_quantity: float
    average_price: float
    legs: tuple[EnrichedOperation, ...]
    order_id: str
    gross_notional: float = 0.0
    fee_amount: float = 0.0
    fee_breakdown: Optional[Any] = None
    category: str = FALLBACK_CATEGORY

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalSymbol": self.original_symbol,
            "matchedSymbol": self.matched_symbol,
            "optionType": self.option_type.value,
            "strike": self.strike,
            "totalQuantity": self.total_quantity,
            "averagePrice": self.average_price,
            "legs": [leg.to_dict() for leg in self.legs],
            "orderId": self.order_id,
            "grossNotional": self.gross_notional,
            "feeAmount": self.fee_amount,
            "feeBreakdown": self.fee_breakdown.to_dict() if self.fee_breakdown else None,
            "category": self.category,
        }


@dataclass(frozen=True)
class ConsolidationResult:
    """Call and put positions sorted by strike, plus consolidation exclusions."""
    calls: list[ConsolidatedPosition] = field(default_factory=list)
    puts: list[ConsolidatedPosition] = field(default_factory=list)
    exclusions: dict[str, int] = field(
        default_factory=lambda: {ExclusionReason.ZERO_NET_QUANTITY.value: 0})
    use_averaging: bool = False

    @property
    def key(self) -> str:
        return AVERAGED_VIEW if self.use_averaging else RAW_VIEW


@dataclass
class _Group:
    option_type: OptionType
    strike: Optional[float]
    matched_symbol: str
    order_id: str
    legs: list[EnrichedOperation] = field(default_factory=list)
    net_quantity: float = 0.0
    weighted_sum: float = 0.0


def _group_key(operation: EnrichedOperation, base_symbol: str, use_averaging: bool) -> tuple:
    if use_averaging:
        return (base_symbol, operation.type, operation.strike, AVERAGED_VIEW)
    return (operation.order_id, base_symbol, operation.type)


def _group_operations(operations: Iterable[EnrichedOperation],
                      use_averaging: bool) -> dict[tuple, _Group]:
    groups: dict[tuple, _Group] = {}
    for operation in operations:
        base_symbol = operation.matched_symbol or operation.original_symbol
        key = _group_key(operation, base_symbol, use_averaging)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _Group(
                option_type=operation.type,
                strike=operation.strike,
                matched_symbol=base_symbol,
                order_id=operation.order_id,
            )

        signed_quantity = operation.signed_quantity
        group.legs.append(operation)
        group.net_quantity += signed_quantity
        group.weighted_sum += signed_quantity * operation.price
        if not use_averaging:
            group.strike = operation.strike
    return groups


def _aggregate_breakdown(first_leg: EnrichedOperation, gross_notional: float,
                         effective_rates: Optional[dict[str, CategoryRates]] = None,
                         caucion_enabled: bool = False) -> Optional[Any]:
    # Repo breakdowns are per caución and are not rescaled
    breakdown = first_leg.fee_breakdown
    if not isinstance(breakdown, FeeBreakdown):
        return breakdown
    if effective_rates:
        category = breakdown.category or FALLBACK_CATEGORY
        return aggregate_fee(gross_notional, category, effective_rates, caucion_enabled).fee_breakdown
    return rescale_breakdown(breakdown, gross_notional)


def _strike_sort_key(position: ConsolidatedPosition) -> tuple[bool, float]:
    return (position.strike is None, position.strike or 0.0)


def consolidate_operations(operations: list[EnrichedOperation],
                           use_averaging: bool = False,
                           effective_rates: Optional[dict[str, CategoryRates]] = None,
                           caucion_enabled: bool = False) -> ConsolidationResult:
    """
    Consolidate operations into call and put positions.

    Args:
        operations: Enriched (and usually fee-enriched) operations
        use_averaging: Merge orders sharing symbol, type and strike
        effective_rates: Rates to recompute each position breakdown on its
            summed notional; leg breakdowns are rescaled without them
        caucion_enabled: Whether caución fees are charged

    Returns:
        ConsolidationResult with positions sorted by ascending strike
    """
    if not operations:
        return ConsolidationResult(use_averaging=use_averaging)

    calls: list[ConsolidatedPosition] = []
    puts: list[ConsolidatedPosition] = []
    zero_net_quantity = 0

    for group in _group_operations(operations, use_averaging).values():
        if group.net_quantity == 0:
            zero_net_quantity += 1
            continue

        first_leg = group.legs[0]
        gross_notional = sum(leg.gross_notional or 0.0 for leg in group.legs)
        position = ConsolidatedPosition(
            original_symbol=first_leg.original_symbol or group.matched_symbol,
            matched_symbol=group.matched_symbol,
            option_type=group.option_type,
            strike=group.strike,
            total_quantity=group.net_quantity,
            average_price=round(group.weighted_sum / group.net_quantity, AVERAGE_PRICE_DECIMALS),
            legs=tuple(group.legs),
            order_id=group.order_id,
            gross_notional=gross_notional,
            fee_amount=sum(leg.fee_amount or 0.0 for leg in group.legs),
            fee_breakdown=_aggregate_breakdown(first_leg, gross_notional,
                                                effective_rates, caucion_enabled),
            category=first_leg.category or FALLBACK_CATEGORY,
        )

        if group.option_type == OptionType.CALL:
            calls.append(position)
        else:
            puts.append(position)

    calls.sort(key=_strike_sort_key)
    puts.sort(key=_strike_sort_key)

    return ConsolidationResult(
        calls=calls,
        puts=puts,
        exclusions={ExclusionReason.ZERO_NET_QUANTITY.value: zero_net_quantity},
        use_averaging=use_averaging,
    )


def build_consolidated_views(operations: list[EnrichedOperation],
                             effective_rates: Optional[dict[str, CategoryRates]] = None,
                             caucion_enabled: bool = False) -> dict[str, ConsolidationResult]:
    """Both the per-order and the averaged consolidation of the same operations."""
    return {
        RAW_VIEW: consolidate_operations(operations, False, effective_rates, caucion_enabled),
        AVERAGED_VIEW: consolidate_operations(operations, True, effective_rates, caucion_enabled),
    }
