"""
Arbitrage domain models.

Trades on the CI and 24hs venues, cauciones that finance them, the
per-instrument/plazo groups they are aggregated into, and the P&L result
of each arbitrage pattern.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Venue(str, Enum):
    """Settlement venue of a trade."""
    CI = "CI"
    H24 = "24h"


class Lado(str, Enum):
    """Trade side: compra or venta."""
    COMPRA = "C"
    VENTA = "V"


class CaucionTipo(str, Enum):
    """Colocadora lends cash and earns interest, tomadora borrows and pays it."""
    COLOCADORA = "colocadora"
    TOMADORA = "tomadora"


class Patron(str, Enum):
    """Arbitrage patterns between the two venues."""
    VENTA_CI_COMPRA_24H = "VentaCI_Compra24h"
    COMPRA_CI_VENTA_24H = "CompraCI_Venta24h"


class Estado(str, Enum):
    """
    Outcome of a pattern.

    SIN_CONTRAPARTE is terminal: one side has no quantity. A matched pattern
    is COMPLETO or CANTIDADES_DESBALANCEADAS when financing could be
    computed, MATCHED_SIN_CAUCION otherwise.
    """
    COMPLETO = "completo"
    CANTIDADES_DESBALANCEADAS = "cantidades_desbalanceadas"
    SIN_CONTRAPARTE = "sin_contraparte"
    MATCHED_SIN_CAUCION = "matched_sin_caucion"


@dataclass(frozen=True)
class Operacion:
    """A CI or 24hs trade, with price normalized by the conversion factor."""
    id: str
    order_id: str
    instrumento: str
    lado: Lado
    fecha_hora: datetime
    cantidad: float
    precio: float
    comisiones: float
    total: float
    venue: Venue
    raw_precio: float
    raw_cantidad: float
    price_conversion_factor: float = 1.0
    contract_multiplier: float = 1.0
    fee_breakdown: Optional[Any] = field(default=None, compare=False)
    category: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "instrumento": self.instrumento,
            "lado": self.lado.value,
            "fechaHora": self.fecha_hora.isoformat(),
            "cantidad": self.cantidad,
            "precio": self.precio,
            "comisiones": self.comisiones,
            "total": self.total,
            "venue": self.venue.value,
            "rawPrecio": self.raw_precio,
            "rawCantidad": self.raw_cantidad,
            "priceConversionFactor": self.price_conversion_factor,
            "contractMultiplier": self.contract_multiplier,
            "feeBreakdown": self.fee_breakdown.to_dict() if self.fee_breakdown else None,
            "category": self.category,
        }


@dataclass(frozen=True)
class Caucion:
    """A caución (repo) leg. ``tasa`` is an annual nominal percentage."""
    id: str
    instrumento: str
    tipo: CaucionTipo
    inicio: datetime
    fin: datetime
    monto: float
    tasa: float
    interes: float
    tenor_dias: int
    fee_amount: float = 0.0
    referencia: Optional[str] = None
    currency: str = "ARS"
    fee_breakdown: Optional[Any] = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "instrumento": self.instrumento,
            "tipo": self.tipo.value,
            "inicio": self.inicio.isoformat(),
            "fin": self.fin.isoformat(),
            "monto": self.monto,
            "tasa": self.tasa,
            "interes": self.interes,
            "tenorDias": self.tenor_dias,
            "feeAmount": self.fee_amount,
            "referencia": self.referencia,
            "currency": self.currency,
            "feeBreakdown": self.fee_breakdown.to_dict() if self.fee_breakdown else None,
        }


@dataclass
class GrupoInstrumentoPlazo:
    """Trades and cauciones of one instrument and plazo, built during one aggregation pass."""
    instrumento: str
    plazo: int
    jornada: Optional[datetime] = None
    ventas_ci: list[Operacion] = field(default_factory=list)
    compras_24h: list[Operacion] = field(default_factory=list)
    compras_ci: list[Operacion] = field(default_factory=list)
    ventas_24h: list[Operacion] = field(default_factory=list)
    cauciones: list[Caucion] = field(default_factory=list)
    avg_tna: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.instrumento}:{self.plazo}"

    @property
    def operation_count(self) -> int:
        return (len(self.ventas_ci) + len(self.compras_24h)
                + len(self.compras_ci) + len(self.ventas_24h))

    def has_trades(self) -> bool:
        return self.operation_count > 0


@dataclass(frozen=True)
class PatronBreakdown:
    """Display figures for one side of a pattern."""
    total_value: float
    avg_price: float
    total_fees: float
    quantity: float

    def to_dict(self) -> dict[str, float]:
        return {
            "totalValue": self.total_value,
            "avgPrice": self.avg_price,
            "totalFees": self.total_fees,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class ResultadoPatron:
    """P&L of one pattern in one group."""
    patron: Patron
    matched_qty: float = 0.0
    precio_promedio: float = 0.0
    pnl_trade: float = 0.0
    pnl_caucion: float = 0.0
    pnl_total: float = 0.0
    estado: Estado = Estado.SIN_CONTRAPARTE
    operations: tuple[Operacion, ...] = ()
    cauciones: tuple[Caucion, ...] = ()
    avg_tna: float = 0.0
    # Sell side and buy side of the pattern, in that order
    breakdowns: dict[str, PatronBreakdown] = field(default_factory=dict)
