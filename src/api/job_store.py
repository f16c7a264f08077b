"""SQLite-based run storage for the reelsmith API.

Each pipeline run gets one row, keyed by the project id allocated when the
run starts, so clients can follow a run before its project row exists and
after the server restarts. Uses aiosqlite for async database operations.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from models.pipeline import ProgressEvent

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = ".reelsmith/runs.db"

QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

DEFAULT_PROGRESS = {"stage": "idle", "percent": 0, "message": "Run queued"}


class JobStore:
    """Async SQLite storage for pipeline runs.

    WebSocket connections remain in-memory (they're ephemeral by nature).
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize run store with database path.

        Args:
            db_path: Path to SQLite database file. Parent directory
                     will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self.db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and create schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row

        await self.db.execute("PRAGMA journal_mode=WAL")
        await self.db.execute("""
            CREATE TABLE IF NOT EXISTS pipeline_runs (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'queued',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                request JSON,
                progress JSON,
                video_url TEXT,
                error TEXT
            )
        """)
        await self.db.execute("""
            CREATE INDEX IF NOT EXISTS idx_runs_user_created
            ON pipeline_runs (user_id, created_at DESC)
        """)
        await self.db.commit()
        logger.info(f"Run store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Run store connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    async def create_run(
        self,
        run_id: str,
        user_id: str,
        request: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a queued run.

        Args:
            run_id: Run identifier (the project id of the run)
            user_id: Owner of the run
            request: Generation parameters, kept for display

        Returns:
            Created run as dict
        """
        db = self._conn()
        now = datetime.now(timezone.utc).isoformat()

        await db.execute(
            "INSERT INTO pipeline_runs (id, user_id, status, created_at, updated_at, request, progress) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (run_id, user_id, QUEUED, now, now, json.dumps(request or {}), json.dumps(DEFAULT_PROGRESS)),
        )
        await db.commit()
        logger.info(f"Created run {run_id} for {user_id}")

        return {
            "id": run_id,
            "user_id": user_id,
            "status": QUEUED,
            "created_at": now,
            "updated_at": now,
            "request": request or {},
            "progress": dict(DEFAULT_PROGRESS),
            "video_url": None,
            "error": None,
        }

    async def get_run(self, run_id: str) -> dict[str, Any] | None:
        """Get a run by ID, or None if not found."""
        async with self._conn().execute(
            "SELECT * FROM pipeline_runs WHERE id = ?", (run_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_dict(row)

    async def update_run(
        self,
        run_id: str,
        status: str | None = None,
        progress: ProgressEvent | None = None,
        video_url: str | None = None,
        error: str | None = None,
    ) -> dict[str, Any] | None:
        """Update a run.

        Args:
            run_id: Run identifier
            status: New status (optional)
            progress: Latest progress event (optional)
            video_url: Final video URL (optional)
            error: User-facing error message (optional)

        Returns:
            Updated run dict or None if not found
        """
        db = self._conn()
        current = await self.get_run(run_id)
        if current is None:
            return None

        now = datetime.now(timezone.utc).isoformat()
        new_status = status or current["status"]
        new_progress = progress.to_dict() if progress else current["progress"]
        new_video_url = video_url if video_url is not None else current["video_url"]
        new_error = error if error is not None else current["error"]

        await db.execute(
            "UPDATE pipeline_runs SET status = ?, updated_at = ?, progress = ?, video_url = ?, error = ? "
            "WHERE id = ?",
            (new_status, now, json.dumps(new_progress), new_video_url, new_error, run_id),
        )
        await db.commit()
        logger.debug(f"Updated run {run_id}: status={new_status}")

        return await self.get_run(run_id)

    async def list_runs(self, user_id: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """List runs, newest first, optionally for one user."""
        query = "SELECT * FROM pipeline_runs"
        params: list[Any] = []
        if user_id:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        async with self._conn().execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_dict(row) for row in rows]

    async def fail_unfinished_runs(self, error: str) -> list[str]:
        """Mark queued and processing runs failed (server restarted under them).

        Returns:
            IDs of the runs that were marked failed
        """
        db = self._conn()
        now = datetime.now(timezone.utc).isoformat()

        async with db.execute(
            "UPDATE pipeline_runs SET status = ?, error = ?, updated_at = ? "
            "WHERE status IN (?, ?) RETURNING id",
            (FAILED, error, now, QUEUED, PROCESSING),
        ) as cursor:
            rows = await cursor.fetchall()
        await db.commit()
        return [row["id"] for row in rows]

    async def cleanup_old_runs(self, days: int = 7) -> int:
        """Delete finished runs older than ``days``. Active runs are kept.

        Returns:
            Number of deleted runs
        """
        db = self._conn()
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        async with db.execute(
            "DELETE FROM pipeline_runs WHERE created_at < ? AND status IN (?, ?) RETURNING id",
            (cutoff, COMPLETED, FAILED),
        ) as cursor:
            rows = await cursor.fetchall()
        await db.commit()

        if rows:
            logger.info(f"Cleaned up {len(rows)} old runs (older than {days} days)")
        return len(rows)

    def _row_to_dict(self, row: aiosqlite.Row) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": row["id"],
            "user_id": row["user_id"],
            "status": row["status"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "video_url": row["video_url"],
            "error": row["error"],
        }
        for column, default in (("request", {}), ("progress", DEFAULT_PROGRESS)):
            raw = row[column]
            try:
                result[column] = json.loads(raw) if raw else dict(default)
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse {column} JSON for run {row['id']}")
                result[column] = dict(default)
        return result
