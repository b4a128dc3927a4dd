"""Configuration validation utilities."""

import math
from dataclasses import dataclass
from typing import Any, Optional

from ..logging import get_logger
from .symbols import (
    DECIMALS_MAX,
    DECIMALS_MIN,
    validate_decimals,
    validate_prefix,
    validate_suffix,
    validate_symbol,
)

logger = get_logger(__name__)

RIGHTS_CATEGORIES = ("accionCedear", "letra", "bonds", "option")
DEFAULT_VAT = 0.21
DEFAULT_BROKER_COMMISSION = 0.6


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _sanitize_percentage(value: Any, field_name: str) -> float:
    """Return a non-negative percentage, or 0 with a warning."""
    if not _is_number(value) or not math.isfinite(value) or value < 0:
        logger.warning("Invalid fee percentage replaced with 0", field=field_name, value=value)
        return 0.0
    return float(value)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_csv_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate CSV reader parameters."""
        errors = []

        for name in ("max_rows", "large_file_warning_threshold"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        if "delimiters" in params:
            value = params["delimiters"]
            if not isinstance(value, str) or not value:
                errors.append(ValidationError(
                    field="delimiters",
                    message="Must be a non-empty string of candidate delimiters",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_processing_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate processing parameters."""
        errors = []

        if "use_averaging" in params:
            value = params["use_averaging"]
            if not isinstance(value, bool):
                errors.append(ValidationError(
                    field="use_averaging",
                    message="Must be a boolean",
                    value=value
                ))

        if params.get("active_symbol"):
            value = params["active_symbol"]
            if validate_symbol(value) is None:
                errors.append(ValidationError(
                    field="active_symbol",
                    message="Must be an alphanumeric symbol",
                    value=value
                ))

        if "active_expiration" in params:
            value = params["active_expiration"]
            if not isinstance(value, str):
                errors.append(ValidationError(
                    field="active_expiration",
                    message="Must be a string",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_fee_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate fee defaults."""
        errors = []

        if "default_vat" in params:
            value = params["default_vat"]
            if not _is_number(value) or value < 0 or value > 1:
                errors.append(ValidationError(
                    field="default_vat",
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        if "default_broker_commission" in params:
            value = params["default_broker_commission"]
            if not _is_number(value) or value < 0:
                errors.append(ValidationError(
                    field="default_broker_commission",
                    message="Must be a non-negative number",
                    value=value
                ))

        if "caucion_fees_enabled" in params:
            value = params["caucion_fees_enabled"]
            if not isinstance(value, bool):
                errors.append(ValidationError(
                    field="caucion_fees_enabled",
                    message="Must be a boolean",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_arbitrage_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate arbitrage engine parameters."""
        errors = []

        if "days_per_year" in params:
            value = params["days_per_year"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="days_per_year",
                    message="Must be a positive integer",
                    value=value
                ))

        if "breakdown_decimals" in params:
            value = params["breakdown_decimals"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="breakdown_decimals",
                    message="Must be a non-negative integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_symbol_config(record: dict[str, Any]) -> list[ValidationError]:
        """Validate a raw symbol configuration record."""
        errors = []

        if validate_symbol(record.get("symbol")) is None:
            errors.append(ValidationError(
                field="symbol",
                message="Must be a non-empty alphanumeric symbol",
                value=record.get("symbol")
            ))

        prefixes = record.get("prefixes")
        if prefixes is None:
            prefixes = [record["prefix"]] if record.get("prefix") is not None else []
        elif isinstance(prefixes, str):
            prefixes = [prefixes]
        for prefix in prefixes:
            if validate_prefix(prefix) is None:
                errors.append(ValidationError(
                    field="prefix",
                    message="Must be alphanumeric",
                    value=prefix
                ))

        for key in ("defaultDecimals", "strikeDefaultDecimals",
                    "default_decimals", "strike_default_decimals"):
            if key in record and validate_decimals(record[key]) is None:
                errors.append(ValidationError(
                    field=key,
                    message=f"Must be an integer between {DECIMALS_MIN} and {DECIMALS_MAX}",
                    value=record[key]
                ))

        expirations = record.get("expirations") or {}
        if not isinstance(expirations, dict):
            errors.append(ValidationError(
                field="expirations",
                message="Must be a mapping of expiration code to settings",
                value=expirations
            ))
            return errors

        for code, setting in expirations.items():
            setting = setting or {}
            for suffix in setting.get("suffixes") or []:
                if validate_suffix(suffix) is None:
                    errors.append(ValidationError(
                        field=f"expirations.{code}.suffixes",
                        message="Must be 1-2 letters",
                        value=suffix
                    ))
            if "decimals" in setting and validate_decimals(setting["decimals"]) is None:
                errors.append(ValidationError(
                    field=f"expirations.{code}.decimals",
                    message=f"Must be an integer between {DECIMALS_MIN} and {DECIMALS_MAX}",
                    value=setting["decimals"]
                ))
            for override in setting.get("overrides") or []:
                raw = str((override or {}).get("raw", "")).strip()
                if not raw.isdigit():
                    errors.append(ValidationError(
                        field=f"expirations.{code}.overrides",
                        message="Override raw token must be digits",
                        value=raw
                    ))

        return errors

    @staticmethod
    def validate_fee_config(
        config: Optional[dict[str, Any]],
        default_vat: float = DEFAULT_VAT,
        default_broker_commission: float = DEFAULT_BROKER_COMMISSION,
    ) -> dict[str, Any]:
        """
        Validate and default a raw fee configuration.

        Unlike the other validators this one repairs instead of reporting:
        invalid or negative percentages become 0, a VAT rate outside [0, 1]
        becomes the default and a missing broker commission becomes the
        default commission. Every repair is logged as a warning.

        Args:
            config: Raw mapping with ``byma`` and ``broker`` sections
            default_vat: VAT used when ``iva`` is missing or invalid
            default_broker_commission: Commission used when it is missing

        Returns:
            Sanitized mapping with the same structure
        """
        if not isinstance(config, dict):
            if config is not None:
                logger.warning("Fee configuration root is not a mapping", value=config)
            config = {}

        byma = config.get("byma") or {}
        broker = config.get("broker") or {}
        derechos = byma.get("derechos_de_mercado") or {}
        cauciones = byma.get("cauciones") or {}

        rights = {
            category: _sanitize_percentage(derechos.get(category),
                                           f"byma.derechos_de_mercado.{category}")
            for category in RIGHTS_CATEGORIES
        }

        vat = derechos.get("iva")
        if not _is_number(vat) or vat < 0 or vat > 1:
            if vat is not None:
                logger.warning("Invalid VAT rate replaced with default",
                               value=vat, default=default_vat)
            vat = default_vat
        rights["iva"] = float(vat)

        if broker.get("commission") is None:
            logger.warning("Broker commission missing, using default",
                           default=default_broker_commission)
            commission = default_broker_commission
        else:
            commission = _sanitize_percentage(broker["commission"], "broker.commission")

        return {
            "byma": {
                "derechos_de_mercado": rights,
                "cauciones": {
                    key: _sanitize_percentage(cauciones.get(key), f"byma.cauciones.{key}")
                    for key in ("derechos_de_mercado_daily_rate", "gastos_garantia_daily_rate")
                },
            },
            "broker": {
                "commission": commission,
                "arancel_caucion_colocadora": _sanitize_percentage(
                    broker.get("arancel_caucion_colocadora"), "broker.arancel_caucion_colocadora"),
                "arancel_caucion_tomadora": _sanitize_percentage(
                    broker.get("arancel_caucion_tomadora"), "broker.arancel_caucion_tomadora"),
            },
        }

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "csv" in config:
            errors.extend(ConfigValidator.validate_csv_params(config["csv"]))

        if "processing" in config:
            errors.extend(ConfigValidator.validate_processing_params(config["processing"]))

        if "fees" in config:
            errors.extend(ConfigValidator.validate_fee_params(config["fees"]))

        if "arbitrage" in config:
            errors.extend(ConfigValidator.validate_arbitrage_params(config["arbitrage"]))

        return errors
