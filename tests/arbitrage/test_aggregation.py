"""Tests for grouping trades and cauciones by instrument and plazo."""

from datetime import datetime

import pytest

from byma_app.arbitrage.aggregation import (
    aggregate_by_instrumento_plazo,
    calculate_weighted_average_tna,
    consolidate_partial_fills,
    filter_grupos_by_instrument,
    get_grupos_summary,
    get_unique_instruments,
)
from byma_app.arbitrage.models import Caucion, CaucionTipo, Lado, Operacion, Venue

FRIDAY = datetime(2025, 10, 17, 13, 0)
THURSDAY = datetime(2025, 10, 16, 13, 0)


def operacion(op_id, order_id, instrumento, lado, venue, cantidad, precio=100.0,
              fecha_hora=FRIDAY) -> Operacion:
    return Operacion(
        id=op_id,
        order_id=order_id,
        instrumento=instrumento,
        lado=lado,
        fecha_hora=fecha_hora,
        cantidad=cantidad,
        precio=precio,
        comisiones=0.0,
        total=cantidad * precio,
        venue=venue,
        raw_precio=precio,
        raw_cantidad=cantidad,
    )


def caucion(caucion_id, monto, tasa, dias=3, instrumento="PESOS",
            tipo=CaucionTipo.COLOCADORA) -> Caucion:
    return Caucion(
        id=caucion_id,
        instrumento=instrumento,
        tipo=tipo,
        inicio=FRIDAY,
        fin=datetime(2025, 10, 17 + dias, 13, 0),
        monto=monto,
        tasa=tasa,
        interes=monto * tasa / 100 * dias / 365,
        tenor_dias=dias,
    )


class TestConsolidatePartialFills:
    """Test suite for duplicate fill removal."""

    def test_keeps_earliest_of_same_quantity(self) -> None:
        late = operacion("a", "O1", "S31O5", Lado.VENTA, Venue.CI, 10,
                         fecha_hora=datetime(2025, 10, 17, 14, 0))
        early = operacion("b", "O1", "S31O5", Lado.VENTA, Venue.CI, 10,
                          fecha_hora=datetime(2025, 10, 17, 13, 0))
        other_qty = operacion("c", "O1", "S31O5", Lado.VENTA, Venue.CI, 5)
        other_order = operacion("d", "O2", "S31O5", Lado.COMPRA, Venue.H24, 10)

        result = consolidate_partial_fills([late, early, other_qty, other_order])

        assert [op.id for op in result] == ["b", "c", "d"]

    def test_no_duplicates(self) -> None:
        operations = [operacion("a", "O1", "X", Lado.VENTA, Venue.CI, 1),
                      operacion("b", "O2", "X", Lado.VENTA, Venue.CI, 1)]

        assert consolidate_partial_fills(operations) == operations


class TestWeightedAverageTna:
    """Test suite for the amount-weighted TNA."""

    def test_weighted(self) -> None:
        cauciones = [caucion("c1", 1000, 40), caucion("c2", 3000, 30)]

        assert calculate_weighted_average_tna(cauciones) == pytest.approx(32.5)

    def test_empty(self) -> None:
        assert calculate_weighted_average_tna([]) == 0.0


class TestAggregateByInstrumentoPlazo:
    """Test suite for aggregate_by_instrumento_plazo."""

    def test_friday_groups_under_three_days(self) -> None:
        operations = [
            operacion("1", "O1", "S31O5", Lado.VENTA, Venue.CI, 61),
            operacion("2", "O2", "S31O5", Lado.COMPRA, Venue.H24, 61),
            operacion("3", "O3", "S31O5", Lado.COMPRA, Venue.CI, 10),
            operacion("4", "O4", "S31O5", Lado.VENTA, Venue.H24, 10),
        ]

        grupos = aggregate_by_instrumento_plazo(operations, [])

        assert list(grupos) == ["S31O5:3"]
        grupo = grupos["S31O5:3"]
        assert [op.id for op in grupo.ventas_ci] == ["1"]
        assert [op.id for op in grupo.compras_24h] == ["2"]
        assert [op.id for op in grupo.compras_ci] == ["3"]
        assert [op.id for op in grupo.ventas_24h] == ["4"]
        assert grupo.avg_tna == 0.0

    def test_plazo_from_earliest_trade(self) -> None:
        operations = [
            operacion("1", "O1", "AL30", Lado.VENTA, Venue.CI, 1, fecha_hora=FRIDAY),
            operacion("2", "O2", "AL30", Lado.COMPRA, Venue.H24, 1, fecha_hora=THURSDAY),
        ]

        grupos = aggregate_by_instrumento_plazo(operations, [])

        assert list(grupos) == ["AL30:1"]

    def test_avg_tna_spread_to_trading_groups(self) -> None:
        operations = [operacion("1", "O1", "S31O5", Lado.VENTA, Venue.CI, 61)]
        cauciones = [caucion("c1", 1000, 40), caucion("c2", 3000, 30, dias=7)]
        jornada = datetime(2025, 10, 17)

        grupos = aggregate_by_instrumento_plazo(operations, cauciones, jornada)

        assert set(grupos) == {"S31O5:3", "PESOS:3", "PESOS:7"}
        assert grupos["S31O5:3"].avg_tna == pytest.approx(32.5)
        assert grupos["S31O5:3"].jornada == jornada
        assert grupos["PESOS:3"].avg_tna == 0.0
        assert [c.id for c in grupos["PESOS:7"].cauciones] == ["c2"]

    def test_empty_input(self) -> None:
        assert aggregate_by_instrumento_plazo([], []) == {}


class TestGroupQueries:
    """Test suite for filtering and summarizing groups."""

    @pytest.fixture
    def grupos(self):
        operations = [
            operacion("1", "O1", "S31O5", Lado.VENTA, Venue.CI, 61),
            operacion("2", "O2", "AL30", Lado.COMPRA, Venue.H24, 5),
        ]
        return aggregate_by_instrumento_plazo(operations, [caucion("c1", 1000, 40)])

    def test_filter(self, grupos) -> None:
        assert [g.instrumento for g in filter_grupos_by_instrument(grupos, "AL30")] == ["AL30"]
        assert len(filter_grupos_by_instrument(grupos, "all")) == 3
        assert len(filter_grupos_by_instrument(grupos, None)) == 3
        assert filter_grupos_by_instrument(grupos, "GGAL") == []

    def test_unique_instruments(self, grupos) -> None:
        assert get_unique_instruments(grupos) == ["AL30", "PESOS", "S31O5"]

    def test_summary(self, grupos) -> None:
        assert get_grupos_summary(grupos) == {
            "totalGrupos": 3,
            "totalInstruments": 3,
            "totalOperations": 2,
            "totalCauciones": 1,
        }
