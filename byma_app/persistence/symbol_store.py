"""SQLite key/value store for symbol configurations."""

import dataclasses
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Union

import orjson

from ..config.symbols import (
    SymbolConfig,
    symbol_config_from_dict,
    symbol_config_to_dict,
    validate_symbol,
)
from ..errors import PersistenceError
from ..logging import get_logger


class SymbolStore:
    """
    One JSON record per symbol, keyed by the upper-cased symbol.

    Concurrent writers are not coordinated beyond the process lock: the
    last save of a symbol wins.
    """

    def __init__(self, db_path: Union[str, Path] = "symbols.db"):
        self.db_path = Path(db_path)
        self.logger = get_logger("byma_app.persistence.symbol_store")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection("init") as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS symbol_configs (
                    symbol TEXT PRIMARY KEY,
                    config_data TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self, operation: str, target: Optional[str] = None):
        """Get database connection, turning sqlite errors into PersistenceError."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", operation=operation, target=target, error=str(e))
            raise PersistenceError(
                f"Symbol store {operation} failed: {e}",
                operation=operation,
                target=target or str(self.db_path),
            ) from e
        finally:
            if conn:
                conn.close()

    @staticmethod
    def _key(symbol: str) -> str:
        return str(symbol or "").strip().upper()

    def save_symbol_config(self, config: SymbolConfig,
                           updated_at: Optional[int] = None) -> SymbolConfig:
        """
        Store a configuration, replacing any previous record of the symbol.

        Args:
            config: Configuration to store
            updated_at: Epoch milliseconds, now when absent

        Returns:
            The stored configuration with its ``updated_at`` stamp

        Raises:
            PersistenceError: If the symbol is invalid or the write fails
        """
        key = validate_symbol(config.symbol)
        if key is None:
            raise PersistenceError(
                f"Cannot save configuration without a valid symbol: {config.symbol!r}",
                operation="save",
                target=str(config.symbol),
            )

        stamp = updated_at if updated_at is not None else int(time.time() * 1000)
        stored = dataclasses.replace(config, symbol=key, updated_at=stamp)

        with self._lock:
            with self._get_connection("save", key) as conn:
                conn.execute("""
                    INSERT OR REPLACE INTO symbol_configs (symbol, config_data, updated_at)
                    VALUES (?, ?, ?)
                """, (key, orjson.dumps(symbol_config_to_dict(stored)).decode(), stamp))
                conn.commit()

        self.logger.info("Symbol configuration stored", symbol=key, updated_at=stamp)
        return stored

    def load_symbol_config(self, symbol: str) -> Optional[SymbolConfig]:
        """Get the stored configuration of a symbol, None if absent."""
        key = self._key(symbol)
        with self._get_connection("load", key) as conn:
            row = conn.execute("""
                SELECT config_data FROM symbol_configs WHERE symbol = ?
            """, (key,)).fetchone()

        if row is None:
            return None
        try:
            return symbol_config_from_dict(orjson.loads(row["config_data"]))
        except orjson.JSONDecodeError as e:
            raise PersistenceError(
                f"Stored configuration for {key} is not valid JSON",
                operation="load",
                target=key,
            ) from e

    def get_all_symbols(self) -> list[str]:
        """Stored symbols, sorted."""
        with self._get_connection("list") as conn:
            rows = conn.execute("""
                SELECT symbol FROM symbol_configs ORDER BY symbol
            """).fetchall()
        return [row["symbol"] for row in rows]

    def load_all(self) -> list[SymbolConfig]:
        """Every stored configuration, sorted by symbol."""
        configs = []
        for symbol in self.get_all_symbols():
            config = self.load_symbol_config(symbol)
            if config is not None:
                configs.append(config)
        return configs

    def delete_symbol_config(self, symbol: str) -> bool:
        """Remove a symbol, True if a record was deleted."""
        key = self._key(symbol)
        with self._lock:
            with self._get_connection("delete", key) as conn:
                cursor = conn.execute("""
                    DELETE FROM symbol_configs WHERE symbol = ?
                """, (key,))
                conn.commit()
                deleted = cursor.rowcount > 0

        if deleted:
            self.logger.info("Symbol configuration deleted", symbol=key)
        return deleted

    def symbol_exists(self, symbol: str) -> bool:
        key = self._key(symbol)
        with self._get_connection("exists", key) as conn:
            row = conn.execute("""
                SELECT 1 FROM symbol_configs WHERE symbol = ?
            """, (key,)).fetchone()
        return row is not None

    def seed_defaults(self, configs: Iterable[SymbolConfig],
                      updated_at: Optional[int] = None) -> list[str]:
        """
        Store configurations whose symbol is not present yet.

        Existing records are never overwritten. A failure on one symbol is
        logged and the remaining symbols are still seeded.

        Returns:
            Symbols that were created
        """
        created = []
        for config in configs:
            try:
                if self.symbol_exists(config.symbol):
                    continue
                self.save_symbol_config(config, updated_at=updated_at)
                created.append(self._key(config.symbol))
            except PersistenceError as e:
                self.logger.error("Symbol seeding failed", symbol=config.symbol,
                                  operation=e.operation, error=str(e))

        if created:
            self.logger.info("Default symbols seeded", created=len(created), symbols=created)
        return created
