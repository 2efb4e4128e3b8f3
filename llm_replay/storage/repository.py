"""
Repository pattern for data access.

Handles the append-only request ledger and the read side of the
model/provider registry.
"""

import json
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..core.errors import StorageError
from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    ModelRecord,
    ProviderRecord,
    RequestMetadata,
    RequestRecord,
    RequestStatus,
)

_REQUEST_COLUMNS = (
    "id, environment_id, route_id, request_id, started_at, completed_at, "
    "duration_ms, status, model_id, provider_id, model_identifier, "
    "input_tokens, output_tokens, input_cost_usd, output_cost_usd, "
    "total_cost_usd, is_streaming, error_code, error_message, metadata"
)


def _row_to_request(row: tuple) -> RequestRecord:
    return RequestRecord(
        id=row[0],
        environment_id=row[1],
        route_id=row[2],
        request_id=row[3],
        started_at=datetime.fromisoformat(row[4]),
        completed_at=datetime.fromisoformat(row[5]) if row[5] else None,
        duration_ms=row[6],
        status=RequestStatus(row[7]),
        model_id=row[8],
        provider_id=row[9],
        model_identifier=row[10],
        input_tokens=row[11],
        output_tokens=row[12],
        input_cost_usd=row[13],
        output_cost_usd=row[14],
        total_cost_usd=row[15],
        is_streaming=bool(row[16]),
        error_code=row[17],
        error_message=row[18],
        metadata=RequestMetadata.from_dict(json.loads(row[19]) if row[19] else None)
    )


class RequestRepository:
    """Append-only store of request records.

    Records can be read and appended. There is deliberately no update or
    delete: completed records are never mutated.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get(self, record_id: str, environment_id: str) -> Optional[RequestRecord]:
        """Load a record by internal id, scoped to an environment.

        Args:
            record_id: Internal record id
            environment_id: Environment the record must belong to

        Returns:
            The record, or None if absent or outside the environment
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM requests WHERE id = ? AND environment_id = ?",
                (record_id, environment_id)
            )
            row = cursor.fetchone()
            return _row_to_request(row) if row else None
        finally:
            conn.close()

    def append(self, record: RequestRecord) -> RequestRecord:
        """Insert a new record into the ledger and return it with its id.

        The insert runs in a single transaction. Any database failure is
        rolled back and surfaced as StorageError.

        Args:
            record: Record to append; its id is ignored and freshly assigned

        Returns:
            The stored record

        Raises:
            StorageError: If the insert fails
        """
        stored = replace(record, id=str(uuid.uuid4()))
        try:
            metadata_json = json.dumps(stored.metadata.to_dict())
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to record request: metadata is not serializable: {e}") from e
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to record request: {e}") from e
        try:
            conn.execute(f"""
                INSERT INTO requests ({_REQUEST_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                stored.id,
                stored.environment_id,
                stored.route_id,
                stored.request_id,
                stored.started_at.isoformat(),
                stored.completed_at.isoformat() if stored.completed_at else None,
                stored.duration_ms,
                stored.status.value,
                stored.model_id,
                stored.provider_id,
                stored.model_identifier,
                stored.input_tokens,
                stored.output_tokens,
                stored.input_cost_usd,
                stored.output_cost_usd,
                stored.total_cost_usd,
                int(stored.is_streaming),
                stored.error_code,
                stored.error_message,
                metadata_json
            ))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to record request: {e}") from e
        finally:
            conn.close()
        return stored

    def list_replays(self, original_id: str) -> List[RequestRecord]:
        """Return every replay of an original, oldest first.

        Args:
            original_id: Internal id of the original record

        Returns:
            Records whose metadata points back at the original
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM requests "
                "WHERE json_extract(metadata, '$.replay_of') = ? "
                "ORDER BY started_at ASC, rowid ASC",
                (original_id,)
            )
            return [_row_to_request(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def count(self, environment_id: Optional[str] = None) -> int:
        """Count stored records, optionally within one environment."""
        conn = get_connection(self.db_path)
        try:
            if environment_id is None:
                cursor = conn.execute("SELECT COUNT(*) FROM requests")
            else:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM requests WHERE environment_id = ?",
                    (environment_id,)
                )
            return cursor.fetchone()[0]
        finally:
            conn.close()


class ModelRegistry:
    """Read access to the model and provider registry.

    Model and provider lookups are separate calls so a caller can tell which
    of the two was missing.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def get_active_model(self, model_identifier: str) -> Optional[ModelRecord]:
        """Look up the first active model with the given identifier.

        Args:
            model_identifier: Provider-facing model id, e.g. "gpt-4o"

        Returns:
            The active model record, or None if none matches
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, model_id, provider_id, input_price_per_m,
                       output_price_per_m, is_active, display_name
                FROM models
                WHERE model_id = ? AND is_active = 1
                LIMIT 1
            """, (model_identifier,))
            row = cursor.fetchone()
            if row is None:
                return None
            return ModelRecord(
                id=row[0],
                model_id=row[1],
                provider_id=row[2],
                input_price_per_m=Decimal(row[3] or "0"),
                output_price_per_m=Decimal(row[4] or "0"),
                is_active=bool(row[5]),
                display_name=row[6]
            )
        finally:
            conn.close()

    def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        """Look up a provider by id."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, name, provider_type, base_url, api_key, status
                FROM providers
                WHERE id = ?
            """, (provider_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return ProviderRecord(
                id=row[0],
                name=row[1],
                provider_type=row[2],
                base_url=row[3],
                api_key=row[4],
                status=row[5]
            )
        finally:
            conn.close()

    def register_provider(self, provider: ProviderRecord) -> None:
        """Insert a provider row. Used for seeding; the registry is owned elsewhere."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO providers (id, name, provider_type, base_url, api_key, status)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                provider.id,
                provider.name,
                provider.provider_type,
                provider.base_url,
                provider.api_key,
                provider.status
            ))
            conn.commit()
        finally:
            conn.close()

    def register_model(self, model: ModelRecord) -> None:
        """Insert a model row. Prices are stored as text to keep them exact."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO models (id, model_id, provider_id, input_price_per_m,
                                    output_price_per_m, is_active, display_name)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                model.id,
                model.model_id,
                model.provider_id,
                str(model.input_price_per_m),
                str(model.output_price_per_m),
                int(model.is_active),
                model.display_name
            ))
            conn.commit()
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the registry and request tables if they don't exist.

    The requests table is an append-only ledger. No UPDATE or DELETE
    operations should ever be performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS providers (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                provider_type TEXT NOT NULL,
                base_url TEXT NOT NULL,
                api_key TEXT,
                status TEXT NOT NULL DEFAULT 'active'
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS models (
                id TEXT PRIMARY KEY,
                model_id TEXT NOT NULL,
                provider_id TEXT NOT NULL REFERENCES providers(id),
                input_price_per_m TEXT NOT NULL,
                output_price_per_m TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                display_name TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS requests (
                id TEXT PRIMARY KEY,
                environment_id TEXT NOT NULL,
                route_id TEXT,
                request_id TEXT NOT NULL,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                duration_ms INTEGER,
                status TEXT NOT NULL,
                model_id TEXT,
                provider_id TEXT,
                model_identifier TEXT NOT NULL,
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                input_cost_usd REAL NOT NULL DEFAULT 0,
                output_cost_usd REAL NOT NULL DEFAULT 0,
                total_cost_usd REAL NOT NULL DEFAULT 0,
                is_streaming INTEGER NOT NULL DEFAULT 0,
                error_code TEXT,
                error_message TEXT,
                metadata TEXT
            )
        """)
        conn.commit()
    finally:
        conn.close()
