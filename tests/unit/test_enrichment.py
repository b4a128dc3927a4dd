"""Unit tests for the symbol enrichment resolver."""

from byma_app.config.symbols import symbol_config_from_dict
from byma_app.data.enrichment import (
    derive_groups,
    detect_token,
    enrich_operation_row,
    extract_candidate_tokens,
    resolve_token_strike,
)
from byma_app.data.models import OptionType, ProcessingConfiguration
from byma_app.data.tokens import parse_token


def _row(**values):
    row = {"order_id": "A1", "side": "BUY", "quantity": 10.0, "price": 150.0}
    row.update(values)
    return row


class TestTokenDetection:
    """Test suite for candidate extraction and token detection."""

    def test_candidates_in_field_order(self) -> None:
        row = {"security_id": "MERV - XMEV - GFGC47343O - 24hs", "symbol": "GGAL"}

        assert extract_candidate_tokens(row) == ["MERV", "XMEV", "GFGC47343O", "24hs", "GGAL"]

    def test_first_parsable_candidate_wins(self) -> None:
        token, source = detect_token({"symbol": "GFGC47343O", "text": "YPFC100O"})

        assert token is not None
        assert token.symbol == "GFG"
        assert source == "GFGC47343O"

    def test_no_token(self) -> None:
        assert detect_token({"symbol": "GGAL"}) == (None, None)


class TestResolveTokenStrike:
    """Test suite for strike rescaling with symbol configuration."""

    def test_override_wins(self, ggal_config) -> None:
        token = parse_token("GFGC47343O")

        assert resolve_token_strike(token, ggal_config, "O") == (4734.3, 1)

    def test_expiration_decimals(self, ggal_config) -> None:
        token = parse_token("GFGC50131D")

        assert resolve_token_strike(token, ggal_config, "D") == (5013.1, 1)

    def test_default_decimals_without_expiration(self, ggal_config) -> None:
        token = parse_token("GFGC5013X")

        assert resolve_token_strike(token, ggal_config, "X") == (5013.0, 0)

    def test_written_decimal_point_replaced(self, ggal_config) -> None:
        """Test that a dotted strike is re-placed with the expiration decimals."""
        token = parse_token("GFGC4478.3F")

        assert resolve_token_strike(token, ggal_config, "F") == (44783.0, 0)

    def test_written_decimal_point_uses_default_decimals(self) -> None:
        config = symbol_config_from_dict({"symbol": "GGAL", "prefixes": ["GFG"], "default_decimals": 2})
        token = parse_token("GFGC4478.3O")

        assert resolve_token_strike(token, config, "O") == (447.83, 2)


class TestEnrichOperationRow:
    """Test suite for enrich_operation_row."""

    def test_token_with_prefix_mapping(self, configuration) -> None:
        """Test that a prefixed ticker resolves to the configured symbol."""
        operation = enrich_operation_row(_row(symbol="GFGC47343O"), configuration)

        assert operation.symbol == "GGAL"
        assert operation.type == OptionType.CALL
        assert operation.strike == 4734.3
        assert operation.expiration == "O"
        assert operation.meta.detected_from_token
        assert operation.meta.source_token == "GFGC47343O"
        assert operation.meta.prefix_rule == "GFG"
        assert operation.meta.strike_decimals == 1

    def test_clean_symbol_beats_token(self, configuration) -> None:
        """Test that an all-letters symbol column is kept over the token root."""
        operation = enrich_operation_row(
            _row(symbol="GGAL", security_id="GFGV50131D", option_type="PUT"), configuration)

        assert operation.symbol == "GGAL"
        assert operation.type == OptionType.PUT
        assert operation.strike == 5013.1
        assert operation.expiration == "D"
        assert operation.meta.prefix_rule == "GFG"

    def test_explicit_columns_win(self, configuration) -> None:
        operation = enrich_operation_row(
            _row(symbol="GFGC47343O", strike=4700.0, expiration="OCT", option_type="PUT"),
            configuration,
        )

        assert operation.strike == 4700.0
        assert operation.expiration == "OCT"
        assert operation.type == OptionType.PUT
        assert operation.meta.strike_decimals is None

    def test_without_configuration(self) -> None:
        """Test that no prefix re-mapping happens without a configuration."""
        operation = enrich_operation_row(_row(symbol="GFGC47343O"))

        assert operation.symbol == "GFG"
        assert operation.strike == 47343.0
        assert operation.meta.prefix_rule is None

    def test_dotted_security_id_strike_rescaled(self) -> None:
        """Test that a dotted ticker strike follows the mapped symbol decimals."""
        config = symbol_config_from_dict({"symbol": "GGAL", "prefixes": ["GFG"], "default_decimals": 2})
        configuration = ProcessingConfiguration.from_symbol_configs([config])

        operation = enrich_operation_row(_row(symbol="", security_id="GFGC4478.3O"), configuration)

        assert operation.symbol == "GGAL"
        assert operation.strike == 447.83
        assert operation.meta.strike_decimals == 2

    def test_prefix_not_applied_to_plain_symbol(self, configuration) -> None:
        """Test that only a ticker root is re-mapped through the prefixes."""
        operation = enrich_operation_row(_row(symbol="GFG"), configuration)

        assert operation.symbol == "GFG"
        assert operation.meta.prefix_rule is None

    def test_structured_security_id(self) -> None:
        operation = enrich_operation_row(
            _row(symbol="", security_id="MERV - XMEV - AL30 - 24hs"))

        assert operation.symbol == "AL30"
        assert operation.expiration == "24HS"
        assert operation.type == OptionType.UNKNOWN
        assert not operation.meta.detected_from_token

    def test_deterministic_id(self) -> None:
        """Test that the id comes from the order id and row position."""
        first = enrich_operation_row(_row(symbol="GGAL"), index=3)
        second = enrich_operation_row(_row(symbol="GGAL"), index=3)

        assert first.id == "A1-3"
        assert first == second

    def test_explicit_id_kept(self) -> None:
        assert enrich_operation_row(_row(symbol="GGAL", id="exec-9")).id == "exec-9"


class TestDeriveGroups:
    """Test suite for group derivation."""

    def test_counts_by_symbol_and_expiration(self, configuration) -> None:
        operations = [
            enrich_operation_row(_row(symbol="GFGC47343O"), configuration, 0),
            enrich_operation_row(_row(symbol="GFGV47343O"), configuration, 1),
            enrich_operation_row(_row(symbol="GGAL"), configuration, 2),
        ]

        groups = derive_groups(operations)

        assert [group["id"] for group in groups] == ["GGAL::NONE", "GGAL::O"]
        assert groups[0]["kind"] == "equity"
        assert groups[0]["counts"] == {"calls": 0, "puts": 0, "total": 1}
        assert groups[1]["kind"] == "option"
        assert groups[1]["counts"] == {"calls": 1, "puts": 1, "total": 2}
