"""Tests for the CI/24hs pattern P&L."""

from datetime import datetime

import pytest

from byma_app.arbitrage.models import (
    Caucion,
    CaucionTipo,
    Estado,
    GrupoInstrumentoPlazo,
    Lado,
    Operacion,
    Patron,
    Venue,
)
from byma_app.arbitrage.pnl import (
    PATTERNS,
    build_arbitrage_rows,
    calculate_caucion_pnl,
    calculate_pattern,
    calculate_pnl,
    weighted_average_price,
)
from byma_app.config.defaults import ArbitrageParams

WHEN = datetime(2025, 10, 17, 13, 0)
VENTA_CI = PATTERNS[0]
COMPRA_CI = PATTERNS[1]


def operacion(op_id, lado, venue, cantidad, precio, comisiones=0.0) -> Operacion:
    return Operacion(
        id=op_id,
        order_id=op_id,
        instrumento="S31O5",
        lado=lado,
        fecha_hora=WHEN,
        cantidad=cantidad,
        precio=precio,
        comisiones=comisiones,
        total=cantidad * precio,
        venue=venue,
        raw_precio=precio,
        raw_cantidad=cantidad,
    )


def caucion(tipo, monto=1000.0, tasa=0.0, interes=30.0, fee_amount=0.0) -> Caucion:
    return Caucion(
        id="c1",
        instrumento="S31O5",
        tipo=tipo,
        inicio=WHEN,
        fin=datetime(2025, 10, 20, 13, 0),
        monto=monto,
        tasa=tasa,
        interes=interes,
        tenor_dias=3,
        fee_amount=fee_amount,
    )


def grupo(**legs) -> GrupoInstrumentoPlazo:
    return GrupoInstrumentoPlazo("S31O5", 3, **legs)


class TestHelpers:
    """Test suite for the P&L helpers."""

    def test_weighted_average_price(self) -> None:
        operations = [operacion("a", Lado.VENTA, Venue.CI, 10, 100),
                      operacion("b", Lado.VENTA, Venue.CI, 30, 120)]

        assert weighted_average_price(operations) == pytest.approx(115.0)
        assert weighted_average_price([]) == 0.0

    def test_caucion_pnl_signs(self) -> None:
        colocadora = caucion(CaucionTipo.COLOCADORA, monto=1000, interes=30)
        tomadora = caucion(CaucionTipo.TOMADORA, monto=1000, interes=30)

        assert calculate_caucion_pnl([colocadora], 100) == pytest.approx(3.0)
        assert calculate_caucion_pnl([tomadora], 100) == pytest.approx(-3.0)
        assert calculate_caucion_pnl([], 100) == 0.0


class TestCalculatePattern:
    """Test suite for calculate_pattern."""

    def test_no_legs(self) -> None:
        assert calculate_pattern(grupo(), VENTA_CI) is None

    def test_sin_contraparte(self) -> None:
        sells = [operacion("a", Lado.VENTA, Venue.CI, 10, 100)]

        result = calculate_pattern(grupo(ventas_ci=sells), VENTA_CI)

        assert result.estado == Estado.SIN_CONTRAPARTE
        assert result.matched_qty == 0
        assert result.pnl_total == 0.0
        assert [op.id for op in result.operations] == ["a"]

    def test_matched_without_caucion(self) -> None:
        sells = [operacion("a", Lado.VENTA, Venue.CI, 10, 101, comisiones=2.0)]
        buys = [operacion("b", Lado.COMPRA, Venue.H24, 10, 100, comisiones=1.0)]

        result = calculate_pattern(grupo(ventas_ci=sells, compras_24h=buys), VENTA_CI)

        assert result.estado == Estado.MATCHED_SIN_CAUCION
        assert result.pnl_trade == pytest.approx(10 - 3)
        assert result.pnl_caucion == 0.0
        assert result.pnl_total == pytest.approx(7.0)
        assert result.precio_promedio == pytest.approx(100.5)

    def test_unbalanced_fees_scaled(self) -> None:
        """Test that fees are scaled to the matched share of each side."""
        sells = [operacion("a", Lado.VENTA, Venue.CI, 20, 101, comisiones=4.0)]
        buys = [operacion("b", Lado.COMPRA, Venue.H24, 10, 100, comisiones=1.0)]

        result = calculate_pattern(
            grupo(ventas_ci=sells, compras_24h=buys, avg_tna=36.5), VENTA_CI)

        assert result.matched_qty == 10
        assert result.pnl_trade == pytest.approx(10 - (2.0 + 1.0))
        assert result.estado == Estado.CANTIDADES_DESBALANCEADAS
        assert result.breakdowns["ventaCI"].quantity == 20
        assert result.breakdowns["ventaCI"].total_fees == 2.0
        assert result.breakdowns["compra24h"].quantity == 10

    def test_colocadora_interest_from_avg_tna(self) -> None:
        sells = [operacion("a", Lado.VENTA, Venue.CI, 10, 100)]
        buys = [operacion("b", Lado.COMPRA, Venue.H24, 10, 100)]
        fee = caucion(CaucionTipo.COLOCADORA, fee_amount=0.5)

        result = calculate_pattern(
            grupo(ventas_ci=sells, compras_24h=buys, cauciones=[fee], avg_tna=36.5), VENTA_CI)

        interest = 1000 * 0.365 * 3 / 365
        assert result.estado == Estado.COMPLETO
        assert result.pnl_caucion == pytest.approx(interest - 0.5)
        assert result.avg_tna == 36.5
        assert len(result.cauciones) == 1

    def test_tomadora_pays_interest(self) -> None:
        buys = [operacion("a", Lado.COMPRA, Venue.CI, 10, 100)]
        sells = [operacion("b", Lado.VENTA, Venue.H24, 10, 100)]
        fee = caucion(CaucionTipo.TOMADORA, fee_amount=0.5)

        result = calculate_pattern(
            grupo(compras_ci=buys, ventas_24h=sells, cauciones=[fee], avg_tna=36.5), COMPRA_CI)

        assert result.patron == Patron.COMPRA_CI_VENTA_24H
        assert result.pnl_caucion == pytest.approx(-(3.0 + 0.5))
        assert [op.id for op in result.operations] == ["a", "b"]
        assert set(result.breakdowns) == {"venta24h", "compraCI"}

    def test_caucion_fallback_without_tna(self) -> None:
        sells = [operacion("a", Lado.VENTA, Venue.CI, 100, 100)]
        buys = [operacion("b", Lado.COMPRA, Venue.H24, 100, 100)]
        linked = caucion(CaucionTipo.COLOCADORA, monto=1000, interes=30)

        result = calculate_pattern(
            grupo(ventas_ci=sells, compras_24h=buys, cauciones=[linked]), VENTA_CI)

        assert result.estado == Estado.COMPLETO
        assert result.pnl_caucion == pytest.approx(3.0)

    def test_days_per_year_param(self) -> None:
        sells = [operacion("a", Lado.VENTA, Venue.CI, 10, 100)]
        buys = [operacion("b", Lado.COMPRA, Venue.H24, 10, 100)]

        result = calculate_pattern(
            grupo(ventas_ci=sells, compras_24h=buys, avg_tna=36.0), VENTA_CI,
            ArbitrageParams(days_per_year=360))

        assert result.pnl_caucion == pytest.approx(1000 * 0.36 * 3 / 360)


class TestCalculatePnl:
    """Test suite for both patterns together."""

    def test_both_patterns(self) -> None:
        g = grupo(
            ventas_ci=[operacion("a", Lado.VENTA, Venue.CI, 10, 101)],
            compras_24h=[operacion("b", Lado.COMPRA, Venue.H24, 10, 100)],
            compras_ci=[operacion("c", Lado.COMPRA, Venue.CI, 5, 100)],
        )

        results = calculate_pnl(g)

        assert [r.patron for r in results] == [Patron.VENTA_CI_COMPRA_24H, Patron.COMPRA_CI_VENTA_24H]
        assert results[1].estado == Estado.SIN_CONTRAPARTE

    def test_rows_skip_unmatched(self) -> None:
        g = grupo(
            ventas_ci=[operacion("a", Lado.VENTA, Venue.CI, 10, 101)],
            compras_24h=[operacion("b", Lado.COMPRA, Venue.H24, 10, 100)],
            compras_ci=[operacion("c", Lado.COMPRA, Venue.CI, 5, 100)],
        )

        rows = build_arbitrage_rows([g])

        assert [row["id"] for row in rows] == ["S31O5-3-VentaCI_Compra24h"]
        assert rows[0]["estado"] == "matched_sin_caucion"
        assert rows[0]["breakdowns"]["ventaCI"]["totalValue"] == 1010.0


class TestEstados:
    """Test suite for the pattern outcomes."""

    def test_only_reachable_estados(self) -> None:
        assert {estado.value for estado in Estado} == {
            "completo",
            "cantidades_desbalanceadas",
            "sin_contraparte",
            "matched_sin_caucion",
        }
