"""
Data ingestion and normalization module.

Handles CSV reading, legacy column fill-in, row validation and the
token-driven symbol enrichment that turns raw broker rows into typed
operations.
"""
