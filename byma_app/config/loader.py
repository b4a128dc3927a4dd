"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import ConfigurationError
from ..logging import get_logger
from .defaults import DefaultConfig, get_default_config
from .symbols import SymbolConfig, symbol_config_from_dict
from .validation import ConfigValidator

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def _load_yaml(self, file_name: str) -> dict[str, Any]:
        """Load one YAML file from the config directory, {} if absent."""
        path = self.config_dir / file_name

        if not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Cannot parse {file_name}: {exc}",
                source=str(path),
            ) from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{file_name} must contain a mapping at the top level",
                source=str(path),
            )
        return data

    def load_settings(self) -> dict[str, Any]:
        """Load the processing settings file (settings.yaml)."""
        return self._load_yaml("settings.yaml")

    def load_fee_config(self) -> dict[str, Any]:
        """
        Load and sanitize the fee configuration from fees.yaml.

        The ``repo`` section (per-currency caución rates) is passed through
        unchanged.
        """
        raw = self._load_yaml("fees.yaml")
        fee_defaults = self.defaults.fees
        validated = ConfigValidator.validate_fee_config(
            raw,
            default_vat=fee_defaults.default_vat,
            default_broker_commission=fee_defaults.default_broker_commission,
        )
        validated["repo"] = raw.get("repo") or {}
        return validated

    def load_symbol_configs(self) -> list[SymbolConfig]:
        """
        Load symbol configurations from symbols.yaml.

        Raises:
            ConfigurationError: If any record fails validation
        """
        raw = self._load_yaml("symbols.yaml")
        records = raw.get("symbols") or []

        configs = []
        errors = []
        for record in records:
            record_errors = ConfigValidator.validate_symbol_config(record or {})
            if record_errors:
                errors.extend(record_errors)
                continue
            configs.append(symbol_config_from_dict(record))

        if errors:
            raise ConfigurationError(
                f"Invalid symbol configuration: {len(errors)} error(s)",
                source=str(self.config_dir / "symbols.yaml"),
                errors=errors,
            )

        logger.debug("Symbol configurations loaded", count=len(configs))
        return configs

    def merge_config(self, run_overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Per-run overrides (highest priority)
        2. settings.yaml
        3. Global defaults (lowest priority)

        Raises:
            ConfigurationError: If the merged configuration is invalid
        """
        # Start with global defaults
        config = self._dataclass_to_dict(self.defaults)

        # Apply file settings
        config = self._deep_merge(config, self.load_settings())

        # Apply per-run overrides
        if run_overrides:
            config = self._deep_merge(config, run_overrides)

        errors = ConfigValidator.validate_config(config)
        if errors:
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(e.field for e in errors)}",
                source="merged",
                errors=errors,
            )

        return config

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
