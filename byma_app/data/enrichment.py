"""
Symbol enrichment resolver.

Turns a validated row into an EnrichedOperation by combining the explicit
columns with whatever an option ticker found in the row says. Each output
field is resolved by an ordered list of strategies; the first strategy
that returns a value wins.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from ..config.symbols import SymbolConfig
from .models import (
    EnrichedOperation,
    OperationMeta,
    OptionType,
    ParsedToken,
    ProcessingConfiguration,
)
from .normalizer import normalize_string, parse_number
from .tokens import format_strike_token, parse_token

CANDIDATE_FIELDS = ("security_id", "symbol", "instrument", "description", "text")
NO_EXPIRATION = "NONE"

_CANDIDATE_SPLIT = re.compile(r"\s+-\s+|[\s,;|/]+")
_CLEAN_SYMBOL = re.compile(r"^[A-Z]+$")
_ALNUM_RUN = re.compile(r"[A-Z0-9]+")
_DELIMITED = re.compile(r"[.\-_]")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_NON_DIGIT = re.compile(r"\D")


@dataclass(frozen=True)
class ResolutionContext:
    """Everything the resolver strategies look at for one row."""
    row: dict[str, Any]
    token: Optional[ParsedToken]
    source_token: Optional[str]

    def text(self, key: str) -> str:
        return normalize_string(self.row.get(key)).upper()


@dataclass(frozen=True)
class Resolved:
    """A resolved value and whether it came from the ticker token."""
    value: Any
    from_token: bool = False


Strategy = Callable[[ResolutionContext], Optional[Resolved]]


def first_resolved(strategies: Iterable[Strategy], context: ResolutionContext) -> Optional[Resolved]:
    """Evaluate strategies in order and return the first non-None result."""
    for strategy in strategies:
        result = strategy(context)
        if result is not None:
            return result
    return None


def extract_candidate_tokens(row: dict[str, Any]) -> list[str]:
    """Split the free-text fields of a row into candidate ticker tokens, in field order."""
    candidates = []
    for key in CANDIDATE_FIELDS:
        value = normalize_string(row.get(key))
        if not value:
            continue
        candidates.extend(part for part in _CANDIDATE_SPLIT.split(value) if part)
    return candidates


def detect_token(row: dict[str, Any]) -> tuple[Optional[ParsedToken], Optional[str]]:
    """Return the first candidate that parses as an option ticker, and the candidate itself."""
    for candidate in extract_candidate_tokens(row):
        parsed = parse_token(candidate)
        if parsed is not None:
            return parsed, candidate.upper()
    return None, None


def _structured_symbol(text: str) -> Optional[str]:
    """Symbol from text like ``MERV - XMEV - GGAL - 24hs`` or the first alphanumeric run."""
    if not text:
        return None
    parts = [p.strip() for p in text.split(" - ") if p.strip()]
    if len(parts) >= 3:
        return _NON_ALNUM.sub("", parts[2]) or None
    match = _ALNUM_RUN.search(text)
    return match.group(0) if match else None


def _delimited_expiration(text: str) -> Optional[str]:
    """Expiration from the delimiter structure of a symbol or security id."""
    if not text:
        return None
    parts = [p.strip() for p in text.split(" - ") if p.strip()]
    if len(parts) >= 4:
        return _NON_ALNUM.sub("", parts[-1]) or None
    pieces = _DELIMITED.split(text, maxsplit=1)
    if len(pieces) == 2:
        return _NON_ALNUM.sub("", pieces[1]) or None
    return None


# Symbol strategies

def _clean_explicit_symbol(ctx: ResolutionContext) -> Optional[Resolved]:
    symbol = ctx.text("symbol")
    if symbol and _CLEAN_SYMBOL.match(symbol):
        return Resolved(symbol)
    return None


def _token_symbol(ctx: ResolutionContext) -> Optional[Resolved]:
    if ctx.token is not None:
        return Resolved(ctx.token.symbol, from_token=True)
    return None


def _explicit_symbol(ctx: ResolutionContext) -> Optional[Resolved]:
    symbol = ctx.text("symbol")
    return Resolved(symbol) if symbol else None


def _structured_row_symbol(ctx: ResolutionContext) -> Optional[Resolved]:
    for key in ("security_id", "instrument"):
        symbol = _structured_symbol(ctx.text(key))
        if symbol:
            return Resolved(symbol)
    return None


SYMBOL_STRATEGIES: tuple[Strategy, ...] = (
    _clean_explicit_symbol,
    _token_symbol,
    _explicit_symbol,
    _structured_row_symbol,
)


# Expiration strategies

def _explicit_expiration(ctx: ResolutionContext) -> Optional[Resolved]:
    expiration = ctx.text("expiration")
    return Resolved(expiration) if expiration else None


def _token_expiration(ctx: ResolutionContext) -> Optional[Resolved]:
    if ctx.token is not None:
        return Resolved(ctx.token.expiration, from_token=True)
    return None


def _delimiter_expiration(ctx: ResolutionContext) -> Optional[Resolved]:
    for key in ("symbol", "security_id"):
        expiration = _delimited_expiration(ctx.text(key))
        if expiration:
            return Resolved(expiration)
    return None


EXPIRATION_STRATEGIES: tuple[Strategy, ...] = (
    _explicit_expiration,
    _token_expiration,
    _delimiter_expiration,
)


# Strike strategies

def _explicit_strike(ctx: ResolutionContext) -> Optional[Resolved]:
    strike = parse_number(ctx.row.get("strike"))
    if strike is None or strike == 0:
        return None
    return Resolved(strike)


def _token_strike(ctx: ResolutionContext) -> Optional[Resolved]:
    if ctx.token is not None:
        return Resolved(ctx.token.strike, from_token=True)
    return None


STRIKE_STRATEGIES: tuple[Strategy, ...] = (_explicit_strike, _token_strike)


# Type strategies

def _explicit_type(ctx: ResolutionContext) -> Optional[Resolved]:
    value = ctx.text("option_type")
    if value in (OptionType.CALL.value, OptionType.PUT.value):
        return Resolved(OptionType(value))
    return None


def _token_type(ctx: ResolutionContext) -> Optional[Resolved]:
    if ctx.token is not None:
        return Resolved(ctx.token.type, from_token=True)
    return None


TYPE_STRATEGIES: tuple[Strategy, ...] = (_explicit_type, _token_type)


def _decimals_of(text: str) -> int:
    return len(text.split(".", 1)[1]) if "." in text else 0


def resolve_token_strike(token: ParsedToken, config: SymbolConfig,
                         expiration: str) -> tuple[float, int]:
    """
    Rescale the token strike digits with the configured decimals.

    Decimals come from an override for the exact digits, then from the
    matching expiration, then from the symbol default. A decimal point
    written in the token is dropped before the configured one is placed.
    """
    digits = _NON_DIGIT.sub("", token.strike_token)

    for exp in (token.expiration, expiration):
        found = config.expiration_for(exp)
        if found is None:
            continue
        _code, setting = found
        override = setting.find_override(digits)
        if override is not None:
            return float(override.formatted), _decimals_of(override.formatted)
        decimals = setting.decimals
        break
    else:
        decimals = config.default_decimals

    return float(format_strike_token(digits, decimals)), decimals


def enrich_operation_row(row: dict[str, Any],
                         configuration: Optional[ProcessingConfiguration] = None,
                         index: int = 0) -> EnrichedOperation:
    """
    Resolve symbol, expiration, strike and option type for one row.

    Args:
        row: Sanitized row (raw-row shape)
        configuration: Symbol configuration snapshot, prefix re-mapping is
            skipped without one
        index: Row position, used to build a deterministic id

    Returns:
        Immutable EnrichedOperation
    """
    token, source_token = detect_token(row)
    ctx = ResolutionContext(row=row, token=token, source_token=source_token)

    symbol = first_resolved(SYMBOL_STRATEGIES, ctx) or Resolved("")
    expiration = first_resolved(EXPIRATION_STRATEGIES, ctx) or Resolved(NO_EXPIRATION)
    strike = first_resolved(STRIKE_STRATEGIES, ctx) or Resolved(None)
    option_type = first_resolved(TYPE_STRATEGIES, ctx) or Resolved(OptionType.UNKNOWN)

    resolved_symbol = symbol.value
    strike_value = strike.value
    prefix_rule = None
    strike_decimals = None

    prefix_map = configuration.prefix_map if configuration else {}
    if token is not None and token.symbol in prefix_map:
        symbol_config = prefix_map[token.symbol]
        prefix_rule = token.symbol
        resolved_symbol = symbol_config.symbol
        if strike.from_token:
            strike_value, strike_decimals = resolve_token_strike(
                token, symbol_config, expiration.value)

    detected = any(r.from_token for r in (symbol, expiration, strike, option_type))
    order_id = normalize_string(row.get("order_id"))
    row_id = normalize_string(row.get("id")) or f"{order_id or 'row'}-{index}"

    return EnrichedOperation(
        id=row_id,
        symbol=resolved_symbol,
        expiration=expiration.value or NO_EXPIRATION,
        strike=strike_value,
        type=option_type.value,
        quantity=parse_number(row.get("quantity")) or 0.0,
        price=parse_number(row.get("price")) or 0.0,
        side=normalize_string(row.get("side")).upper(),
        meta=OperationMeta(
            detected_from_token=detected,
            source_token=source_token if detected else None,
            prefix_rule=prefix_rule,
            strike_decimals=strike_decimals,
        ),
        order_id=order_id,
        original_symbol=normalize_string(row.get("symbol")) or (source_token or resolved_symbol),
        matched_symbol=resolved_symbol,
        status=normalize_string(row.get("status")),
        raw=row,
    )


def derive_groups(operations: Iterable[EnrichedOperation]) -> list[dict[str, Any]]:
    """
    Count calls and puts per symbol and expiration.

    Blank expirations and non-option rows group under ``NONE``. A group is
    an ``option`` group when any of its operations is a call or a put,
    ``equity`` otherwise.
    """
    groups: dict[str, dict[str, Any]] = {}
    for operation in operations:
        symbol = operation.symbol or ""
        if operation.type == OptionType.UNKNOWN:
            expiration = NO_EXPIRATION
        else:
            expiration = operation.expiration or NO_EXPIRATION
        group_id = f"{symbol}::{expiration}"
        group = groups.setdefault(group_id, {
            "id": group_id,
            "symbol": symbol,
            "expiration": expiration,
            "kind": "equity",
            "counts": {"calls": 0, "puts": 0, "total": 0},
        })
        counts = group["counts"]
        if operation.type == OptionType.CALL:
            counts["calls"] += 1
            group["kind"] = "option"
        elif operation.type == OptionType.PUT:
            counts["puts"] += 1
            group["kind"] = "option"
        counts["total"] += 1

    return [groups[key] for key in sorted(groups)]
