#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from byma_app.config.loader import ConfigLoader
from byma_app.config.validation import ConfigValidator
from byma_app.errors import ConfigurationError


def main():
    """Main validation function."""
    config_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    loader = ConfigLoader.create(config_dir)
    print(f"🔍 Validating configuration in {loader.config_dir}...")

    all_valid = True

    print("\n⚙️  Validating settings.yaml...")
    try:
        loader.merge_config()
        print("✅ Settings are valid")
    except ConfigurationError as e:
        print(f"❌ {e}")
        for error in e.errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        all_valid = False

    print("\n💰 Validating fees.yaml...")
    try:
        fee_config = loader.load_fee_config()
        repo = fee_config.get("repo") or {}
        print(f"✅ Fee configuration loaded (commission {fee_config['broker']['commission']}%, "
              f"IVA {fee_config['byma']['derechos_de_mercado']['iva']}, "
              f"repo currencies {sorted((repo.get('arancel_caucion_colocadora') or {}).keys())})")
    except ConfigurationError as e:
        print(f"❌ {e}")
        all_valid = False

    print("\n🏷️  Validating symbols.yaml...")
    try:
        configs = loader.load_symbol_configs()
        print(f"✅ {len(configs)} symbol configuration(s) valid")
    except ConfigurationError as e:
        print(f"❌ {e}")
        for error in e.errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        all_valid = False

    print("\n📋 Testing run overrides...")
    test_overrides = {
        "processing": {
            "use_averaging": True,
            "active_symbol": "GGAL",
        }
    }
    config = loader.merge_config(test_overrides) if all_valid else {}
    errors = ConfigValidator.validate_config(config) if config else []
    if errors:
        print("❌ Override validation failed:")
        for error in errors:
            print(f"  • {error.field}: {error.message}")
        all_valid = False
    elif config:
        print("✅ Override validation passed")

    if all_valid:
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
