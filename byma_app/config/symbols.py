"""
Symbol configuration records.

A symbol configuration tells the enrichment resolver how option tickers of
an underlying are written: which ticker prefixes belong to it and how many
decimals the strike digits carry, per expiration and per individual token.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

# Fixed expiration codes offered for every symbol
EXPIRATION_CODES = ("DIC", "FEB", "ABR", "JUN", "AGO", "OCT")

DECIMALS_MIN = 0
DECIMALS_MAX = 4
SUFFIX_MIN_LENGTH = 1
SUFFIX_MAX_LENGTH = 2

# (symbol, option ticker prefix)
DEFAULT_SYMBOL_CONFIGS = (
    ("AL30", "A30"),
    ("ALUA", "ALU"),
    ("BBAR", "BBA"),
    ("BHIP", "BHI"),
    ("BMA", "BMA"),
    ("BYMA", "BYM"),
    ("CEPU", "CEP"),
    ("COME", "COM"),
    ("EDN", "EDN"),
    ("GGAL", "GFG"),
    ("METR", "MET"),
    ("MIRG", "MIR"),
    ("PAMP", "PAM"),
    ("SUPV", "SUP"),
    ("TECO2", "TEC"),
    ("TGNO4", "TGN"),
    ("TGSU2", "TGS"),
    ("TRAN", "TRA"),
    ("TXAR", "TXA"),
    ("YPFD", "YPF"),
)

_ALNUM_RE = re.compile(r"^[A-Z0-9]+$")
_LETTERS_RE = re.compile(r"^[A-Z]+$")


@dataclass(frozen=True)
class StrikeOverride:
    """Explicit formatting for one raw strike token."""
    raw: str            # Digits as they appear in the ticker, e.g. "47343"
    formatted: str      # Strike to use, e.g. "4734.3"


@dataclass(frozen=True)
class ExpirationSetting:
    """Per-expiration ticker rules."""
    suffixes: tuple[str, ...] = ()
    decimals: int = 0
    overrides: tuple[StrikeOverride, ...] = ()

    def matches(self, code: str, expiration: str) -> bool:
        """True when a token expiration refers to this expiration."""
        expiration = expiration.upper()
        return expiration == code.upper() or expiration in self.suffixes

    def find_override(self, raw_token: str) -> Optional[StrikeOverride]:
        for override in self.overrides:
            if override.raw == raw_token:
                return override
        return None


@dataclass(frozen=True)
class SymbolConfig:
    """Configuration for one underlying symbol."""
    symbol: str
    prefixes: tuple[str, ...] = ()
    default_decimals: int = 0
    expirations: dict[str, ExpirationSetting] = field(default_factory=dict)
    updated_at: Optional[int] = None

    @property
    def prefix(self) -> str:
        """Primary prefix, empty if none configured."""
        return self.prefixes[0] if self.prefixes else ""

    def expiration_for(self, expiration: str) -> Optional[tuple[str, ExpirationSetting]]:
        """Find the configured expiration a token suffix belongs to."""
        if not expiration:
            return None
        for code, setting in self.expirations.items():
            if setting.matches(code, expiration):
                return code, setting
        return None

    def suffixes_for(self, code: str) -> tuple[str, ...]:
        setting = self.expirations.get(code)
        return setting.suffixes if setting else ()


def _normalize_token(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().upper()


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def symbol_config_from_dict(data: dict[str, Any]) -> SymbolConfig:
    """
    Build a SymbolConfig from a stored or YAML record.

    Accepts both ``prefix`` and ``prefixes`` and the decimal aliases
    ``defaultDecimals``, ``strikeDefaultDecimals``, ``default_decimals`` and
    ``strike_default_decimals``.
    """
    raw_prefixes = data.get("prefixes")
    if raw_prefixes is None:
        raw_prefixes = [data.get("prefix")]
    elif isinstance(raw_prefixes, str):
        raw_prefixes = [raw_prefixes]
    prefixes = tuple(p for p in (_normalize_token(p) for p in raw_prefixes) if p)

    decimals = None
    for key in ("strikeDefaultDecimals", "strike_default_decimals",
                "defaultDecimals", "default_decimals"):
        if data.get(key) is not None:
            decimals = _to_int(data[key])
            break

    expirations = {}
    for code, setting in (data.get("expirations") or {}).items():
        setting = setting or {}
        suffixes = tuple(
            s for s in (_normalize_token(s) for s in setting.get("suffixes") or []) if s
        )
        overrides = tuple(
            StrikeOverride(raw=str(o.get("raw", "")).strip(), formatted=str(o.get("formatted", "")).strip())
            for o in setting.get("overrides") or []
            if o and o.get("raw")
        )
        expirations[_normalize_token(code)] = ExpirationSetting(
            suffixes=suffixes,
            decimals=_to_int(setting.get("decimals")),
            overrides=overrides,
        )

    return SymbolConfig(
        symbol=_normalize_token(data.get("symbol")),
        prefixes=prefixes,
        default_decimals=decimals if decimals is not None else 0,
        expirations=expirations,
        updated_at=data.get("updatedAt", data.get("updated_at")),
    )


def symbol_config_to_dict(config: SymbolConfig) -> dict[str, Any]:
    """Serialize a SymbolConfig to the stored record format."""
    return {
        "symbol": config.symbol,
        "prefixes": list(config.prefixes),
        "defaultDecimals": config.default_decimals,
        "expirations": {
            code: {
                "suffixes": list(setting.suffixes),
                "decimals": setting.decimals,
                "overrides": [
                    {"raw": o.raw, "formatted": o.formatted} for o in setting.overrides
                ],
            }
            for code, setting in config.expirations.items()
        },
        "updatedAt": config.updated_at,
    }


def create_default_symbol_config(symbol: str, prefix: str = "",
                                 updated_at: Optional[int] = None) -> SymbolConfig:
    """
    Create the default configuration for a symbol.

    Every fixed expiration code gets its one- and two-letter suffixes and
    zero decimals. GGAL uses one decimal for OCT and DIC.
    """
    symbol = _normalize_token(symbol)
    expirations = {}
    for code in EXPIRATION_CODES:
        decimals = 1 if symbol == "GGAL" and code in ("OCT", "DIC") else 0
        expirations[code] = ExpirationSetting(suffixes=(code[0], code[:2]), decimals=decimals)

    prefix = _normalize_token(prefix)
    return SymbolConfig(
        symbol=symbol,
        prefixes=(prefix,) if prefix else (),
        default_decimals=0,
        expirations=expirations,
        updated_at=updated_at,
    )


def build_prefix_map(configs) -> dict[str, SymbolConfig]:
    """Index symbol configurations by every configured prefix."""
    prefix_map: dict[str, SymbolConfig] = {}
    for config in configs:
        for prefix in config.prefixes:
            prefix_map[prefix] = config
    return prefix_map


def validate_symbol(symbol: Any) -> Optional[str]:
    """Upper-cased symbol if it is a valid identifier, else None."""
    normalized = _normalize_token(symbol)
    if not normalized or not _ALNUM_RE.match(normalized):
        return None
    return normalized


def validate_prefix(prefix: Any) -> Optional[str]:
    """Upper-cased prefix; empty string is a valid (absent) prefix."""
    if prefix is None:
        return None
    normalized = _normalize_token(prefix)
    if normalized and not _ALNUM_RE.match(normalized):
        return None
    return normalized


def validate_suffix(suffix: Any) -> Optional[str]:
    """Upper-cased suffix of 1-2 letters, else None."""
    normalized = _normalize_token(suffix)
    if not SUFFIX_MIN_LENGTH <= len(normalized) <= SUFFIX_MAX_LENGTH:
        return None
    if not _LETTERS_RE.match(normalized):
        return None
    return normalized


def validate_decimals(decimals: Any) -> Optional[int]:
    """Integer decimals in [DECIMALS_MIN, DECIMALS_MAX], else None."""
    if isinstance(decimals, bool):
        return None
    if isinstance(decimals, str):
        decimals = decimals.strip()
        if not decimals.lstrip("-").isdigit():
            return None
        decimals = int(decimals)
    if not isinstance(decimals, int):
        return None
    if decimals < DECIMALS_MIN or decimals > DECIMALS_MAX:
        return None
    return decimals
