"""
BYMA App - Options and Term-Arbitrage Operations Processor

Processes broker trade-execution CSV exports for the Argentine market,
reclassifies raw rows into typed option operations and computes
settlement-adjusted P&L for CI/24hs term-arbitrage strategies.
"""

__version__ = "0.1.0"
__author__ = "BYMA App Team"
