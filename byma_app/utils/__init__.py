"""
Utility functions module.

Calendar arithmetic shared by the arbitrage aggregation and P&L engine.

Settlement semantics:
- CI (contado inmediato) settles on the trade date
- 24hs settles on the next business day
- Plazo is always expressed in calendar days
"""
