"""
Durable key/value storage surviving across invocations.

Used for batch checkpoints and the roster change-detection cache. Two
backends are provided: a local JSON file (default) and a SQL table through
SQLAlchemy for deployments that already run a database.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import SyncError

logger = logging.getLogger(__name__)


class StorageError(SyncError):
    """Raised when persisted state cannot be read or written."""
    pass


class KeyValueStore(ABC):
    """Abstract base class for durable string key/value stores."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class JsonFileStore(KeyValueStore):
    """
    Key/value store backed by a single JSON document on disk.

    Writes go to a temporary file that is then moved over the original, so an
    invocation killed mid-write never leaves a truncated state file.
    """

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read state file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"State file {self.path} does not contain a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Could not write state file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def put(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SqlKeyValueStore(KeyValueStore):
    """
    Key/value store backed by a SQL table.

    The table is created on first use:
    ``(state_key VARCHAR PRIMARY KEY, state_value TEXT, updated_at TIMESTAMP)``.
    """

    def __init__(self, engine: Union[Engine, str], table: str = "sync_state"):
        """
        Args:
            engine: SQLAlchemy engine, or a database URL to create one from.
            table: Table name (may be schema-qualified, e.g. ``meta.sync_state``).
        """
        self.engine = create_engine(engine, pool_pre_ping=True) if isinstance(engine, str) else engine
        self.table = table
        self._ensure_table()

    def _ensure_table(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(f"""
                        CREATE TABLE IF NOT EXISTS {self.table} (
                            state_key VARCHAR(255) PRIMARY KEY,
                            state_value TEXT NOT NULL,
                            updated_at TIMESTAMP NOT NULL
                        )
                    """)
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create state table {self.table}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text(f"SELECT state_value FROM {self.table} WHERE state_key = :key"),
                    {"key": key},
                ).fetchone()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read state key {key}: {e}") from e
        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(f"DELETE FROM {self.table} WHERE state_key = :key"), {"key": key})
                conn.execute(
                    text(f"""
                        INSERT INTO {self.table} (state_key, state_value, updated_at)
                        VALUES (:key, :value, :updated_at)
                    """),
                    {"key": key, "value": value, "updated_at": datetime.now(timezone.utc).isoformat()},
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not write state key {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(f"DELETE FROM {self.table} WHERE state_key = :key"), {"key": key})
        except SQLAlchemyError as e:
            raise StorageError(f"Could not delete state key {key}: {e}") from e


def create_store(checkpoint_path: str, database_url: Optional[str] = None) -> KeyValueStore:
    """Pick the SQL store when a database is configured, the JSON file otherwise."""
    if database_url:
        logger.info("Using SQL state store")
        return SqlKeyValueStore(database_url)
    logger.info(f"Using JSON state file: {checkpoint_path}")
    return JsonFileStore(checkpoint_path)
