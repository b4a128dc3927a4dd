"""
Pure fee calculation over precomputed per-category rates.

Rates are whole percentages in the validated fee configuration and
fractions here: a 0.6% commission is stored as 0.006.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..data.models import FeeBreakdown

FEE_CATEGORIES = ("accionCedear", "letra", "bonds", "option", "caucion")
FALLBACK_CATEGORY = "bonds"
VAT_CATEGORIES = frozenset({"accionCedear", "option"})


@dataclass(frozen=True)
class CategoryRates:
    """Effective rates for one fee category."""
    commission_pct: float
    rights_pct: float
    vat_pct: float
    effective_rate: float
    daily_rates: dict[str, float] = field(default_factory=dict)
    aranceles: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class FeeResult:
    fee_amount: float
    fee_breakdown: FeeBreakdown


def compute_effective_rates(validated_config: dict[str, Any]) -> dict[str, CategoryRates]:
    """
    Precompute effective rates per category.

    Acciones/CEDEARs and options pay VAT on commission plus rights; letras
    and bonds pay no VAT. Cauciones carry their daily rates and aranceles
    instead of a single effective rate.

    Args:
        validated_config: Output of ConfigValidator.validate_fee_config

    Returns:
        Mapping of category name to CategoryRates
    """
    derechos = validated_config["byma"]["derechos_de_mercado"]
    broker = validated_config["broker"]
    commission = broker["commission"]
    iva = derechos["iva"]

    rates = {}
    for category in ("accionCedear", "letra", "bonds", "option"):
        rights = derechos[category]
        vat = iva if category in VAT_CATEGORIES else 0.0
        rates[category] = CategoryRates(
            commission_pct=commission / 100,
            rights_pct=rights / 100,
            vat_pct=vat,
            effective_rate=(commission + rights) * (1 + vat) / 100,
        )

    rates["caucion"] = CategoryRates(
        commission_pct=0.0,
        rights_pct=0.0,
        vat_pct=0.0,
        effective_rate=0.0,
        daily_rates=dict(validated_config["byma"]["cauciones"]),
        aranceles={
            "colocadora": broker["arancel_caucion_colocadora"] / 100,
            "tomadora": broker["arancel_caucion_tomadora"] / 100,
        },
    )
    return rates


def placeholder_breakdown(category: str = "caucion") -> FeeBreakdown:
    """Zero breakdown used while caución fees are disabled."""
    return FeeBreakdown(
        commission_pct=0.0,
        rights_pct=0.0,
        vat_pct=0.0,
        commission_amount=0.0,
        rights_amount=0.0,
        vat_amount=0.0,
        category=category,
        source="placeholder",
    )


def calculate_fee(gross_notional: float, category: str,
                  effective_rates: dict[str, CategoryRates],
                  caucion_enabled: bool = False) -> FeeResult:
    """
    Fee for one operation.

    Unknown categories use the bonds rates. VAT applies to commission
    plus rights.
    """
    if category == "caucion" and not caucion_enabled:
        return FeeResult(fee_amount=0.0, fee_breakdown=placeholder_breakdown())

    rates = effective_rates.get(category) or effective_rates[FALLBACK_CATEGORY]

    commission_amount = gross_notional * rates.commission_pct
    rights_amount = gross_notional * rates.rights_pct
    base_amount = commission_amount + rights_amount
    vat_amount = base_amount * rates.vat_pct

    return FeeResult(
        fee_amount=base_amount + vat_amount,
        fee_breakdown=FeeBreakdown(
            commission_pct=rates.commission_pct,
            rights_pct=rates.rights_pct,
            vat_pct=rates.vat_pct,
            commission_amount=commission_amount,
            rights_amount=rights_amount,
            vat_amount=vat_amount,
            category=category,
            source="config",
        ),
    )


def aggregate_fee(aggregated_gross_notional: float, category: str,
                  effective_rates: dict[str, CategoryRates],
                  caucion_enabled: bool = False) -> FeeResult:
    """Fee recomputed on a summed gross notional, not a sum of leg fees."""
    return calculate_fee(aggregated_gross_notional, category, effective_rates, caucion_enabled)


def rescale_breakdown(breakdown: Optional[FeeBreakdown],
                      gross_notional: float) -> Optional[FeeBreakdown]:
    """Recompute the breakdown amounts of a leg for a consolidated notional."""
    if breakdown is None:
        return None
    commission_amount = gross_notional * breakdown.commission_pct
    rights_amount = gross_notional * breakdown.rights_pct
    return FeeBreakdown(
        commission_pct=breakdown.commission_pct,
        rights_pct=breakdown.rights_pct,
        vat_pct=breakdown.vat_pct,
        commission_amount=commission_amount,
        rights_amount=rights_amount,
        vat_amount=(commission_amount + rights_amount) * breakdown.vat_pct,
        category=breakdown.category,
        source=breakdown.source,
    )
