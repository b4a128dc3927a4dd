"""Unit tests for row validation."""

import pytest

from byma_app.data.models import ExclusionReason, OptionType, ProcessingConfiguration, Side
from byma_app.data.validators import (
    RowValidator,
    ensure_required_columns,
    normalize_status,
    validate_and_filter_rows,
)
from byma_app.errors import MissingColumnsError


class TestNormalizeStatus:
    """Test suite for status normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("Filled", "fully_executed"),
        ("Ejecutada", "fully_executed"),
        ("partial_fill", "partially_executed"),
        ("Parcialmente ejecutada", "partially_executed"),
        ("cancelled", "cancelled"),
        (None, ""),
    ])
    def test_spellings(self, raw, expected) -> None:
        assert normalize_status(raw) == expected


class TestRowValidator:
    """Test suite for single-row checks, in check order."""

    def test_valid_row(self, make_option_row) -> None:
        validated, reason = RowValidator().validate_row(
            make_option_row("A1", "GFGC47343O", "buy", "call", "10", "150,5"))

        assert reason is None
        assert validated.side == Side.BUY
        assert validated.option_type == OptionType.CALL
        assert validated.quantity == 10.0
        assert validated.price == 150.5
        assert validated.strike is None
        assert validated.status == "fully_executed"

    @pytest.mark.parametrize("overrides,reason", [
        ({"order_id": ""}, ExclusionReason.MISSING_REQUIRED_FIELD),
        ({"event_type": "order_status"}, ExclusionReason.INVALID_EVENT_TYPE),
        ({"status": "cancelled"}, ExclusionReason.INVALID_STATUS),
        ({"exec_type": "0"}, ExclusionReason.INVALID_EXEC_TYPE),
        ({"side": "HOLD"}, ExclusionReason.INVALID_SIDE),
        ({"option_type": ""}, ExclusionReason.INVALID_OPTION_TYPE),
        ({"strike": "abc"}, ExclusionReason.INVALID_STRIKE),
        ({"quantity": "0"}, ExclusionReason.INVALID_QUANTITY),
        ({"price": "-1"}, ExclusionReason.INVALID_PRICE),
    ])
    def test_exclusion_reasons(self, make_option_row, overrides, reason) -> None:
        row = make_option_row("A1", "GFGC47343O", "BUY", "CALL", "10", "150")
        row.update(overrides)

        validated, actual = RowValidator().validate_row(row)

        assert validated is None
        assert actual == reason

    def test_first_failing_check_wins(self, make_option_row) -> None:
        row = make_option_row("A1", "GFGC47343O", "HOLD", "CALL", "0", "-1")

        assert RowValidator().validate_row(row)[1] == ExclusionReason.INVALID_SIDE

    def test_exec_type_fill_accepted(self, make_option_row) -> None:
        row = make_option_row("A1", "GFGC47343O", "BUY", "CALL", "10", "150", exec_type="f")

        assert RowValidator().validate_row(row)[1] is None


class TestScope:
    """Test suite for active symbol and expiration scope."""

    def _validator(self, symbol_configs, symbol="GGAL", expiration="OCT") -> RowValidator:
        configuration = ProcessingConfiguration.from_symbol_configs(
            symbol_configs, active_symbol=symbol, active_expiration=expiration)
        return RowValidator(configuration)

    def test_prefix_and_suffix_in_scope(self, symbol_configs, make_option_row) -> None:
        validator = self._validator(symbol_configs)
        row = make_option_row("A1", "GFGC47343O", "BUY", "CALL", "10", "150")

        assert validator.in_scope(row)

    def test_other_expiration_out_of_scope(self, symbol_configs, make_option_row) -> None:
        validator = self._validator(symbol_configs)
        row = make_option_row("A1", "GFGC47343D", "BUY", "CALL", "10", "150")

        assert validator.validate_row(row) == (None, ExclusionReason.OUT_OF_SCOPE)

    def test_other_symbol_out_of_scope(self, symbol_configs, make_option_row) -> None:
        validator = self._validator(symbol_configs)
        row = make_option_row("A1", "YPFC100O", "BUY", "CALL", "10", "150")

        assert not validator.in_scope(row)

    def test_symbol_without_expiration(self, symbol_configs, make_option_row) -> None:
        """Test that without an active expiration only the prefix is checked."""
        validator = self._validator(symbol_configs, expiration="")
        row = make_option_row("A1", "GFGC47343D", "BUY", "CALL", "10", "150")

        assert validator.in_scope(row)

    def test_no_scope(self, make_option_row) -> None:
        row = make_option_row("A1", "YPFC100O", "BUY", "CALL", "10", "150")

        assert RowValidator().in_scope(row)


class TestValidateRows:
    """Test suite for batch validation."""

    def test_conservation(self, option_rows) -> None:
        """Test that every row is either kept or counted once."""
        result = validate_and_filter_rows(option_rows)

        assert len(result.operations) == 4
        assert result.exclusions[ExclusionReason.INVALID_QUANTITY.value] == 1
        assert result.exclusions[ExclusionReason.INVALID_STATUS.value] == 1
        assert len(result.operations) + result.excluded_count == len(option_rows)

    def test_every_reason_counted(self) -> None:
        result = validate_and_filter_rows([])

        assert ExclusionReason.OUT_OF_SCOPE.value in result.exclusions
        assert ExclusionReason.ZERO_NET_QUANTITY.value not in result.exclusions
        assert result.excluded_count == 0

    def test_missing_structural_column(self) -> None:
        with pytest.raises(MissingColumnsError) as exc_info:
            ensure_required_columns([{"order_id": "1", "quantity": "1", "price": "1"}])

        assert exc_info.value.missing_columns == ["side"]
        assert not exc_info.value.recoverable
