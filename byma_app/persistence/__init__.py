"""Symbol configuration persistence."""

from .symbol_store import SymbolStore

__all__ = ["SymbolStore"]
