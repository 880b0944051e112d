"""Persistent team configuration, status and user preferences."""

import sqlite3
import logging
from datetime import datetime
from typing import Optional
from pathlib import Path
import asyncio

from core.errors import StorageError
from core.types import DaemonConfig, DaemonStatus
from core.units import DisplayUnit, parse_display_unit

logger = logging.getLogger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class TeamStore:
    """SQLite store keyed by team id (and user id for preferences)."""

    def __init__(self, db_path: str = "dashboard.db"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        logger.info(f"Initialized team store at {db_path}")

    async def start(self) -> None:
        """Open the database connection and create tables."""
        await asyncio.get_event_loop().run_in_executor(None, self._init_db)
        logger.info("Team store started")

    def _init_db(self) -> None:
        """Internal: Initialize database connection and schema."""
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS team_configs (
                team_id TEXT PRIMARY KEY,
                base_url TEXT NOT NULL,
                password TEXT NOT NULL,
                is_active INTEGER NOT NULL,
                created_at TEXT,
                updated_at TEXT,
                created_by TEXT,
                last_modified_by TEXT
            );

            CREATE TABLE IF NOT EXISTS team_status (
                team_id TEXT PRIMARY KEY,
                is_connected INTEGER NOT NULL,
                last_checked TEXT NOT NULL,
                version TEXT,
                error TEXT
            );

            CREATE TABLE IF NOT EXISTS user_preferences (
                user_id TEXT PRIMARY KEY,
                display_unit TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
        """)
        self.conn.commit()

    async def stop(self) -> None:
        """Close database connection."""
        if self.conn:
            await asyncio.get_event_loop().run_in_executor(None, self.conn.close)
            self.conn = None
        logger.info("Team store stopped")

    def _connection(self) -> sqlite3.Connection:
        if not self.conn:
            raise StorageError("Team store not started - call start() first")
        return self.conn

    async def get_config(self, team_id: str) -> Optional[DaemonConfig]:
        """Get the FMCD configuration for a team.

        Args:
            team_id: Team identifier

        Returns:
            DaemonConfig or None if the team has none
        """
        conn = self._connection()

        def _get():
            cursor = conn.execute(
                "SELECT * FROM team_configs WHERE team_id = ?",
                (team_id,)
            )
            row = cursor.fetchone()
            if not row:
                return None
            return DaemonConfig(
                team_id=row["team_id"],
                base_url=row["base_url"],
                password=row["password"],
                is_active=bool(row["is_active"]),
                created_at=_from_iso(row["created_at"]),
                updated_at=_from_iso(row["updated_at"]),
                created_by=row["created_by"] or "",
                last_modified_by=row["last_modified_by"] or "",
            )

        return await asyncio.get_event_loop().run_in_executor(None, _get)

    async def set_config(self, team_id: str, config: DaemonConfig) -> None:
        """Save the FMCD configuration for a team.

        Args:
            team_id: Team identifier
            config: Configuration to store
        """
        conn = self._connection()

        def _save():
            conn.execute(
                """INSERT OR REPLACE INTO team_configs
                   (team_id, base_url, password, is_active, created_at, updated_at,
                    created_by, last_modified_by)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    team_id,
                    config.base_url,
                    config.password,
                    int(config.is_active),
                    _to_iso(config.created_at),
                    _to_iso(config.updated_at),
                    config.created_by,
                    config.last_modified_by,
                )
            )
            conn.commit()

        await asyncio.get_event_loop().run_in_executor(None, _save)
        logger.debug(f"Saved FMCD config for team {team_id}")

    async def get_status(self, team_id: str) -> Optional[DaemonStatus]:
        """Get the last recorded connection status for a team."""
        conn = self._connection()

        def _get():
            cursor = conn.execute(
                "SELECT * FROM team_status WHERE team_id = ?",
                (team_id,)
            )
            row = cursor.fetchone()
            if not row:
                return None
            return DaemonStatus(
                is_connected=bool(row["is_connected"]),
                last_checked=_from_iso(row["last_checked"]),
                version=row["version"],
                error=row["error"],
            )

        return await asyncio.get_event_loop().run_in_executor(None, _get)

    async def set_status(self, team_id: str, status: DaemonStatus) -> None:
        """Record the connection status for a team."""
        conn = self._connection()

        def _save():
            conn.execute(
                """INSERT OR REPLACE INTO team_status
                   (team_id, is_connected, last_checked, version, error)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    team_id,
                    int(status.is_connected),
                    _to_iso(status.last_checked),
                    status.version,
                    status.error,
                )
            )
            conn.commit()

        await asyncio.get_event_loop().run_in_executor(None, _save)

    async def get_display_unit(self, user_id: str) -> DisplayUnit:
        """Get a user's preferred display unit (SATS if unset)."""
        conn = self._connection()

        def _get():
            cursor = conn.execute(
                "SELECT display_unit FROM user_preferences WHERE user_id = ?",
                (user_id,)
            )
            row = cursor.fetchone()
            return row["display_unit"] if row else None

        value = await asyncio.get_event_loop().run_in_executor(None, _get)
        return parse_display_unit(value) if value else DisplayUnit.SATS

    async def set_display_unit(self, user_id: str, unit: DisplayUnit) -> None:
        conn = self._connection()

        def _set():
            conn.execute(
                """INSERT OR REPLACE INTO user_preferences (user_id, display_unit, updated_at)
                   VALUES (?, ?, CURRENT_TIMESTAMP)""",
                (user_id, unit.value)
            )
            conn.commit()

        await asyncio.get_event_loop().run_in_executor(None, _set)
