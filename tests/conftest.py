"""Pytest configuration and shared fixtures."""

import os
import shutil
import tempfile
from typing import Any, Dict, List

import pytest

from byma_app.config.symbols import create_default_symbol_config, symbol_config_from_dict
from byma_app.config.validation import ConfigValidator
from byma_app.data.models import ProcessingConfiguration
from byma_app.fees.calculator import compute_effective_rates

FEE_CONFIG: Dict[str, Any] = {
    "byma": {
        "derechos_de_mercado": {
            "accionCedear": 0.08,
            "letra": 0.001,
            "bonds": 0.01,
            "option": 0.2,
            "iva": 0.21,
        },
        "cauciones": {
            "derechos_de_mercado_daily_rate": 0.0005,
            "gastos_garantia_daily_rate": 0.00035,
        },
    },
    "broker": {
        "commission": 0.6,
        "arancel_caucion_colocadora": 1.5,
        "arancel_caucion_tomadora": 1.5,
    },
}

REPO_CONFIG: Dict[str, Any] = {
    "arancel_caucion_colocadora": {"ARS": 0.2, "USD": 0.2},
    "arancel_caucion_tomadora": {"ARS": 0.25, "USD": 0.25},
    "derechos_de_mercado_daily_rate": {"ARS": 0.0005, "USD": 0.0005},
    "gastos_garantia_daily_rate": {"ARS": 0.00035, "USD": 0.00035},
    "iva_repo_rate": 0.21,
}

S31O5_TIME = "2025-10-17 13:36:13.415000Z"


def option_row(order_id: str, symbol: str, side: str, option_type: str,
               quantity: str, price: str, **extra: Any) -> Dict[str, Any]:
    """Execution row in the broker export layout."""
    row = {
        "order_id": order_id,
        "symbol": symbol,
        "side": side,
        "option_type": option_type,
        "strike": "",
        "quantity": quantity,
        "price": price,
        "status": "fully_executed",
        "event_type": "execution_report",
    }
    row.update(extra)
    return row


@pytest.fixture
def make_option_row():
    return option_row


@pytest.fixture
def fee_config() -> Dict[str, Any]:
    return FEE_CONFIG


@pytest.fixture
def ggal_config():
    """GGAL configuration with the GFG prefix and an OCT override."""
    return symbol_config_from_dict({
        "symbol": "GGAL",
        "prefixes": ["GFG"],
        "default_decimals": 0,
        "expirations": {
            "OCT": {
                "suffixes": ["O", "OC"],
                "decimals": 1,
                "overrides": [{"raw": "47343", "formatted": "4734.3"}],
            },
            "DIC": {"suffixes": ["D", "DI"], "decimals": 1},
            "FEB": {"suffixes": ["F", "FE"], "decimals": 0},
        },
    })


@pytest.fixture
def symbol_configs(ggal_config):
    return [
        ggal_config,
        create_default_symbol_config("ALUA", "ALU"),
        create_default_symbol_config("YPFD", "YPF"),
    ]


@pytest.fixture
def configuration(symbol_configs) -> ProcessingConfiguration:
    """Configuration snapshot without an active scope."""
    return ProcessingConfiguration.from_symbol_configs(symbol_configs)


@pytest.fixture
def effective_rates():
    return compute_effective_rates(ConfigValidator.validate_fee_config(FEE_CONFIG))


@pytest.fixture
def repo_config() -> Dict[str, Any]:
    return dict(REPO_CONFIG)


@pytest.fixture
def option_rows() -> List[Dict[str, Any]]:
    """Six execution rows: four valid, one zero quantity, one cancelled."""
    return [
        option_row("A1", "GFGC47343O", "BUY", "CALL", "10", "150"),
        option_row("A1", "GFGC47343O", "BUY", "CALL", "5", "160", status="partially_executed"),
        option_row("A2", "GFGV45000O", "SELL", "PUT", "3", "80"),
        option_row("A3", "GFGC47343O", "SELL", "CALL", "2", "170"),
        option_row("A4", "GFGC47343O", "BUY", "CALL", "0", "170"),
        option_row("A5", "GFGC47343O", "BUY", "CALL", "1", "170", status="cancelled"),
    ]


@pytest.fixture
def s31o5_rows() -> List[Dict[str, Any]]:
    """Sell CI and buy 24hs of S31O5 on Friday 2025-10-17."""
    return [
        {
            "order_id": "O1",
            "symbol": "MERV - XMEV - S31O5 - CI",
            "side": "SELL",
            "last_qty": "61",
            "last_price": "130.70",
            "transact_time": S31O5_TIME,
        },
        {
            "order_id": "O2",
            "symbol": "MERV - XMEV - S31O5 - 24hs",
            "side": "BUY",
            "last_qty": "61",
            "last_price": "130.91",
            "transact_time": S31O5_TIME,
        },
    ]


@pytest.fixture
def caucion_row() -> Dict[str, Any]:
    """Three-day peso caución placed (BUY) at 40% TNA."""
    return {
        "order_id": "C1",
        "symbol": "MERV - XMEV - PESOS - 3D",
        "side": "BUY",
        "last_qty": "1000",
        "last_price": "40",
        "transact_time": S31O5_TIME,
    }


@pytest.fixture
def temp_dir():
    """Temporary directory removed after the test."""
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path)


@pytest.fixture
def db_path(temp_dir) -> str:
    return os.path.join(temp_dir, "symbols.db")
