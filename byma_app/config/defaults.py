"""Default configuration parameters for the operations processor."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CsvParams:
    """CSV ingestion limits."""
    max_rows: int = 50000                            # Hard cap, parsing stops here
    large_file_warning_threshold: int = 25000        # Emits largeFileThreshold warning
    delimiters: str = ",;\t"                         # Candidates for delimiter sniffing


@dataclass(frozen=True)
class ProcessingParams:
    """Display pipeline parameters."""
    use_averaging: bool = False                      # Active view: averaged vs raw
    active_symbol: str = ""                          # Scope filter, empty disables it
    active_expiration: str = ""                      # Expiration code within the symbol config


@dataclass(frozen=True)
class FeeParams:
    """Fee defaults applied when the fee configuration omits a value."""
    default_vat: float = 0.21                        # IVA Argentina
    default_broker_commission: float = 0.6           # Whole percentage
    caucion_fees_enabled: bool = False               # Placeholder breakdown when disabled


@dataclass(frozen=True)
class ArbitrageParams:
    """Term-arbitrage calculation parameters."""
    days_per_year: int = 365                         # TNA day-count basis
    breakdown_decimals: int = 2                      # Rounding of per-leg display values


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    csv: CsvParams
    processing: ProcessingParams
    fees: FeeParams
    arbitrage: ArbitrageParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        csv=CsvParams(),
        processing=ProcessingParams(),
        fees=FeeParams(),
        arbitrage=ArbitrageParams(),
    )
