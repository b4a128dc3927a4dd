"""
Caución (repo) expense calculation.

A caución pays an arancel (annualized), BYMA market rights and, for the
borrowing side, guarantee expenses (both daily rates), plus VAT on all of
them. Rates are configured per currency.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from ..logging import get_fee_logger

logger = get_fee_logger(__name__)

REPO_RECONCILIATION_TOLERANCE = 0.01
DAYS_PER_YEAR = 365

COLOCADORA = "colocadora"
TOMADORA = "tomadora"

_TENOR_PATTERN = re.compile(r"(-?\d+)\s*[dD]\b")
_REPO_CFI = re.compile(r"^(RP|FR)")

RATE_LABELS = {
    "arancel": "Arancel de caución",
    "derechos": "Derechos de mercado (diario)",
    "gastos": "Gastos de garantía (diario)",
    "iva": "IVA Repo",
}


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number and abs(number) != float("inf") else 0.0


def parse_tenor_days(display_name: Any) -> int:
    """Tenor from an instrument label such as ``MERV - XMEV - PESOS - 3D``; 0 if absent."""
    if not isinstance(display_name, str) or not display_name:
        return 0
    match = _TENOR_PATTERN.search(display_name)
    if not match:
        return 0
    days = int(match.group(1))
    return days if days > 0 else 0


def normalize_repo_currency(raw_currency: Any) -> Optional[str]:
    """Map currency spellings (PESOS, U$S, DOLAR...) to ARS or USD."""
    if not isinstance(raw_currency, str):
        return None
    normalized = raw_currency.strip().upper()
    if not normalized:
        return None
    if normalized in ("U$S", "US$", "UUSD", "DOLAR", "DÓLAR") or normalized.startswith("USD"):
        return "USD"
    if normalized in ("PESO", "PESOS") or normalized.startswith("ARS"):
        return "ARS"
    return normalized


def calculate_accrued_interest(principal: float, tna: float, tenor_days: float) -> float:
    """Simple interest at an annual nominal rate (percentage) over the tenor."""
    principal, tna, days = _number(principal), _number(tna), _number(tenor_days)
    if principal <= 0 or tna == 0 or days <= 0:
        return 0.0
    return principal * (tna / 100) * (days / DAYS_PER_YEAR)


def calculate_arancel(base_amount: float, rate_percent: float, tenor_days: float) -> float:
    base, rate, days = _number(base_amount), _number(rate_percent), _number(tenor_days)
    if base <= 0 or rate <= 0 or days <= 0:
        return 0.0
    return base * (rate / 100) * (days / DAYS_PER_YEAR)


def calculate_derechos_mercado(base_amount: float, daily_rate_percent: float,
                               tenor_days: float) -> float:
    base, rate, days = _number(base_amount), _number(daily_rate_percent), _number(tenor_days)
    if base <= 0 or rate <= 0 or days <= 0:
        return 0.0
    return base * (rate / 100) * days


def calculate_gastos_garantia(base_amount: float, daily_rate_percent: float,
                              tenor_days: float, role: str = COLOCADORA) -> float:
    """Guarantee expenses, charged to the borrowing side only."""
    if role != TOMADORA:
        return 0.0
    return calculate_derechos_mercado(base_amount, daily_rate_percent, tenor_days)


def calculate_iva(amounts: list[float], iva_rate: float) -> float:
    rate = _number(iva_rate)
    if not amounts or rate <= 0:
        return 0.0
    return sum(_number(a) for a in amounts) * rate


@dataclass(frozen=True)
class Reconciliation:
    """Check that base amount equals principal plus accrued interest."""
    reconciles: bool
    diff: float
    expected: float
    actual: float
    tolerance: float = REPO_RECONCILIATION_TOLERANCE


def reconcile_base_amount(principal: float, accrued_interest: float, base_amount: float,
                          tolerance: float = REPO_RECONCILIATION_TOLERANCE) -> Reconciliation:
    expected = _number(principal) + _number(accrued_interest)
    actual = _number(base_amount)
    diff = actual - expected
    return Reconciliation(
        reconciles=abs(diff) <= tolerance,
        diff=diff,
        expected=expected,
        actual=actual,
        tolerance=tolerance,
    )


@dataclass(frozen=True)
class RepoWarning:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RepoOperation:
    """Input for the repo expense calculation."""
    id: Optional[str]
    role: str
    currency: Optional[str]
    principal_amount: float
    tna: float
    tenor_days: int = 0
    base_amount: float = 0.0
    cfi_code: str = "RP"
    display_name: str = ""


@dataclass
class RepoExpenseBreakdown:
    """Expenses of one caución. Built up by calculate_repo_expense_breakdown."""
    repo_operation_id: Optional[str]
    currency: Optional[str]
    role: str
    principal_amount: float
    base_amount: float
    tenor_days: int = 0
    accrued_interest: float = 0.0
    arancel_amount: float = 0.0
    derechos_mercado_amount: float = 0.0
    gastos_garantia_amount: float = 0.0
    iva_amount: float = 0.0
    total_expenses: float = 0.0
    net_settlement: float = 0.0
    warnings: list[RepoWarning] = field(default_factory=list)
    status: str = "pending"
    blocked: bool = False
    source: str = "repo"
    error_message: Optional[str] = None
    reconciliation: Optional[Reconciliation] = None

    @property
    def category(self) -> str:
        return "caucion"

    def to_dict(self) -> dict[str, Any]:
        return {
            "repoOperationId": self.repo_operation_id,
            "currency": self.currency,
            "role": self.role,
            "tenorDays": self.tenor_days,
            "principalAmount": self.principal_amount,
            "baseAmount": self.base_amount,
            "accruedInterest": self.accrued_interest,
            "arancelAmount": self.arancel_amount,
            "derechosMercadoAmount": self.derechos_mercado_amount,
            "gastosGarantiaAmount": self.gastos_garantia_amount,
            "ivaAmount": self.iva_amount,
            "totalExpenses": self.total_expenses,
            "netSettlement": self.net_settlement,
            "warnings": [{"code": w.code, "message": w.message, **w.details} for w in self.warnings],
            "status": self.status,
            "blocked": self.blocked,
            "source": self.source,
            "errorMessage": self.error_message,
        }


def _resolve_rates(repo_config: dict[str, Any], currency: Optional[str], role: str) -> dict[str, float]:
    arancel_key = "arancel_caucion_tomadora" if role == TOMADORA else "arancel_caucion_colocadora"

    def by_currency(key: str) -> float:
        if not currency:
            return 0.0
        return _number((repo_config.get(key) or {}).get(currency))

    return {
        "arancel": by_currency(arancel_key),
        "derechos": by_currency("derechos_de_mercado_daily_rate"),
        "gastos": by_currency("gastos_garantia_daily_rate"),
        "iva": _number(repo_config.get("iva_repo_rate")),
    }


def _missing_rates(rates: dict[str, float], role: str) -> list[str]:
    missing = [key for key in ("arancel", "derechos") if rates[key] <= 0]
    if role == TOMADORA and rates["gastos"] <= 0:
        missing.append("gastos")
    if rates["iva"] <= 0:
        missing.append("iva")
    return missing


def is_repo_cfi_code(cfi_code: Any) -> bool:
    return isinstance(cfi_code, str) and bool(_REPO_CFI.match(cfi_code))


def calculate_repo_expense_breakdown(repo: RepoOperation,
                                     repo_config: dict[str, Any]) -> Optional[RepoExpenseBreakdown]:
    """
    Expense breakdown for one caución.

    Returns None for operations that are not repos. A breakdown with an
    invalid tenor or with rates missing for its currency and role is
    returned blocked, with zero expenses and a warning.
    """
    if not is_repo_cfi_code(repo.cfi_code):
        return None

    base_amount = _number(repo.base_amount)
    principal = _number(repo.principal_amount)
    tenor_days = repo.tenor_days if repo.tenor_days > 0 else parse_tenor_days(repo.display_name)

    breakdown = RepoExpenseBreakdown(
        repo_operation_id=repo.id,
        currency=repo.currency,
        role=repo.role,
        principal_amount=principal,
        base_amount=base_amount,
        tenor_days=tenor_days,
        net_settlement=base_amount,
    )

    if tenor_days <= 0:
        warning = RepoWarning("REPO_TENOR_INVALID", "Tenor no disponible para la operación de caución.")
        breakdown.warnings.append(warning)
        breakdown.blocked = True
        breakdown.status = "error"
        breakdown.source = "repo-tenor-invalid"
        breakdown.error_message = warning.message
        logger.warning("Repo tenor invalid", repo_operation_id=repo.id,
                       display_name=repo.display_name)
        return breakdown

    rates = _resolve_rates(repo_config or {}, repo.currency, repo.role)
    missing = _missing_rates(rates, repo.role)
    if missing:
        labels = ", ".join(RATE_LABELS[key] for key in missing)
        warning = RepoWarning(
            "REPO_CONFIG_INCOMPLETE",
            f"Faltan tasas para {repo.currency or '---'} {repo.role or '---'}: {labels}.",
            {"missingRates": missing, "currency": repo.currency, "role": repo.role},
        )
        breakdown.warnings.append(warning)
        breakdown.blocked = True
        breakdown.status = "error"
        breakdown.source = "repo-config-error"
        breakdown.error_message = warning.message
        logger.warning("Repo fee config incomplete", repo_operation_id=repo.id,
                       currency=repo.currency, role=repo.role, missing_rates=missing)
        return breakdown

    accrued = calculate_accrued_interest(principal, repo.tna, tenor_days)
    breakdown.accrued_interest = accrued

    if base_amount == 0 and principal > 0:
        base_amount = principal + accrued
        breakdown.base_amount = base_amount

    reconciliation = reconcile_base_amount(principal, accrued, base_amount)
    breakdown.reconciliation = reconciliation
    if not reconciliation.reconciles:
        breakdown.warnings.append(RepoWarning(
            "REPO_BASE_AMOUNT_MISMATCH",
            "El monto base no concilia con principal + interés devengado.",
            {"diff": reconciliation.diff},
        ))
        logger.warning("Repo base amount mismatch", repo_operation_id=repo.id,
                       diff=reconciliation.diff, expected=reconciliation.expected,
                       actual=reconciliation.actual)

    arancel = calculate_arancel(base_amount, rates["arancel"], tenor_days)
    derechos = calculate_derechos_mercado(base_amount, rates["derechos"], tenor_days)
    gastos = calculate_gastos_garantia(base_amount, rates["gastos"], tenor_days, repo.role)
    iva = calculate_iva([arancel, derechos, gastos], rates["iva"])
    total = arancel + derechos + gastos + iva

    breakdown.arancel_amount = arancel
    breakdown.derechos_mercado_amount = derechos
    breakdown.gastos_garantia_amount = gastos
    breakdown.iva_amount = iva
    breakdown.total_expenses = total
    breakdown.net_settlement = base_amount + total if repo.role == TOMADORA else base_amount - total
    breakdown.status = "ok"
    breakdown.source = "repo"
    return breakdown
