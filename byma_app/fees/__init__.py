"""
Fee calculation module.

Resolves instrument categories from the exchange instrument table and
computes broker commission, market rights and VAT over gross notional,
plus the caución (repo) expense breakdown.
"""
