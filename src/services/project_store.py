"""SQLite-based persistence for projects, scenes, profiles and API keys.

Uses aiosqlite for async database operations. All runs and requests share
one connection, so every write holds a lock from its first statement to its
commit or rollback; a rollback can then only undo its own statements.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from models.account import ApiKey, Profile, SubscriptionTier
from models.project import (
    PROJECT_STATUS_TRANSITIONS,
    Project,
    ProjectStatus,
    Scene,
)
from utils.errors import InvalidStatusTransition, PersistenceError

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = ".reelsmith/reelsmith.db"

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS profiles (
        user_id TEXT PRIMARY KEY,
        credits INTEGER NOT NULL DEFAULT 0 CHECK (credits >= 0),
        subscription_tier TEXT NOT NULL DEFAULT 'free',
        display_name TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        prompt TEXT NOT NULL,
        style TEXT NOT NULL,
        aspect_ratio TEXT NOT NULL,
        duration INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'draft',
        script JSON,
        video_url TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scenes (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
        scene_number INTEGER NOT NULL CHECK (scene_number >= 1),
        description TEXT NOT NULL,
        narration TEXT NOT NULL,
        duration INTEGER NOT NULL CHECK (duration >= 1),
        image_url TEXT,
        audio_url TEXT,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (project_id, scene_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_keys (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        key_hash TEXT NOT NULL UNIQUE,
        key_preview TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        usage_count INTEGER NOT NULL DEFAULT 0,
        last_used_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_projects_user ON projects (user_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_api_keys_user ON api_keys (user_id)",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectStore:
    """Async SQLite storage for the pipeline's persisted entities."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize project store with database path.

        Args:
            db_path: Path to SQLite database file. Parent directory
                     will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self.db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row

        await self.db.execute("PRAGMA journal_mode=WAL")
        await self.db.execute("PRAGMA foreign_keys=ON")
        for statement in SCHEMA:
            await self.db.execute(statement)
        await self.db.commit()
        logger.info(f"Project store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Project store connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    # =========================================================================
    # Projects
    # =========================================================================

    async def create_project(self, project: Project) -> Project:
        """Insert a project row.

        Raises:
            PersistenceError: If the insert fails
        """
        db = self._conn()
        now = _now()
        project.created_at = project.created_at or now
        project.updated_at = now

        async with self._write_lock:
            try:
                await db.execute(
                    """
                    INSERT INTO projects (id, user_id, title, prompt, style, aspect_ratio,
                        duration, status, script, video_url, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        project.id,
                        project.user_id,
                        project.title,
                        project.prompt,
                        project.style.value,
                        project.aspect_ratio.value,
                        project.duration,
                        project.status.value,
                        json.dumps(project.script) if project.script is not None else None,
                        project.video_url,
                        project.created_at,
                        project.updated_at,
                    ),
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                logger.error(f"Failed to create project {project.id}: {e}")
                raise PersistenceError(f"Failed to create project {project.id}: {e}") from e

        logger.info(f"Created project {project.id} for user {project.user_id}")
        return project

    async def insert_scenes(self, project_id: str, scenes: list[Scene]) -> list[Scene]:
        """Bulk-insert all scenes of a project in one transaction.

        Scene numbers must form the contiguous sequence 1..N.

        Raises:
            PersistenceError: If numbering is not contiguous or the insert fails
        """
        db = self._conn()
        numbers = sorted(s.scene_number for s in scenes)
        if numbers != list(range(1, len(scenes) + 1)):
            raise PersistenceError(
                f"Scene numbers for project {project_id} must be 1..{len(scenes)}, got {numbers}"
            )

        now = _now()
        ordered = sorted(scenes, key=lambda s: s.scene_number)
        for scene in ordered:
            scene.project_id = project_id
            scene.id = scene.id or f"{project_id}-{scene.scene_number}"
            scene.created_at = scene.created_at or now
            scene.updated_at = now

        async with self._write_lock:
            try:
                await db.executemany(
                    """
                    INSERT INTO scenes (id, project_id, scene_number, description, narration,
                        duration, image_url, audio_url, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            s.id,
                            project_id,
                            s.scene_number,
                            s.description,
                            s.narration,
                            s.duration,
                            s.image_url,
                            s.audio_url,
                            s.status.value,
                            s.created_at,
                            s.updated_at,
                        )
                        for s in ordered
                    ],
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                logger.error(f"Failed to insert scenes for project {project_id}: {e}")
                raise PersistenceError(
                    f"Failed to insert scenes for project {project_id}: {e}"
                ) from e

        logger.info(f"Inserted {len(ordered)} scenes for project {project_id}")
        return ordered

    async def get_project(self, project_id: str, include_scenes: bool = True) -> Project | None:
        """Get a project by ID, optionally with its ordered scenes."""
        db = self._conn()
        async with db.execute("SELECT * FROM projects WHERE id = ?", (project_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        project = self._row_to_project(row)
        if include_scenes:
            project.scenes = await self.list_scenes(project_id)
        return project

    async def list_projects(self, user_id: str, limit: int = 100) -> list[Project]:
        """List a user's projects, newest first (without scenes)."""
        db = self._conn()
        async with db.execute(
            "SELECT * FROM projects WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_project(row) for row in rows]

    async def list_scenes(self, project_id: str) -> list[Scene]:
        """List a project's scenes ordered by scene number."""
        db = self._conn()
        async with db.execute(
            "SELECT * FROM scenes WHERE project_id = ? ORDER BY scene_number",
            (project_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_scene(row) for row in rows]

    async def update_project(
        self,
        project_id: str,
        status: ProjectStatus | None = None,
        video_url: str | None = None,
    ) -> Project | None:
        """Update a project's status and/or video URL.

        The status change is applied with a conditional single-row UPDATE, so
        a concurrent writer cannot move a completed project backwards.

        Returns:
            Updated project (with scenes) or None if not found

        Raises:
            InvalidStatusTransition: If the status change is not allowed
            PersistenceError: If the update fails
        """
        db = self._conn()
        assignments = ["updated_at = ?"]
        params: list[Any] = [_now()]
        where = "id = ?"
        where_params: list[Any] = [project_id]

        if status is not None:
            status = ProjectStatus(status)
            allowed_from = [
                s.value for s, targets in PROJECT_STATUS_TRANSITIONS.items() if status in targets
            ]
            assignments.append("status = ?")
            params.append(status.value)
            where += f" AND status IN ({', '.join('?' for _ in allowed_from)})"
            where_params.extend(allowed_from)
        if video_url is not None:
            assignments.append("video_url = ?")
            params.append(video_url)

        async with self._write_lock:
            try:
                cursor = await db.execute(
                    f"UPDATE projects SET {', '.join(assignments)} WHERE {where}",
                    (*params, *where_params),
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Failed to update project {project_id}: {e}") from e

        if cursor.rowcount == 0:
            current = await self.get_project(project_id, include_scenes=False)
            if current is None or status is None:
                return current
            raise InvalidStatusTransition(
                f"Project {project_id} cannot move from {current.status.value} to {status.value}"
            )

        logger.debug(f"Updated project {project_id}: status={status.value if status else '-'}")
        return await self.get_project(project_id)

    async def fail_interrupted_projects(self) -> list[str]:
        """Move every ``generating`` project to ``failed``.

        Only valid while no run is in progress, i.e. at server startup.

        Returns:
            IDs of the projects that were moved
        """
        db = self._conn()
        async with self._write_lock:
            async with db.execute(
                "UPDATE projects SET status = ?, updated_at = ? WHERE status = ? RETURNING id",
                (ProjectStatus.FAILED.value, _now(), ProjectStatus.GENERATING.value),
            ) as cursor:
                rows = await cursor.fetchall()
            await db.commit()
        return [row["id"] for row in rows]

    async def delete_project(self, project_id: str, user_id: str | None = None) -> bool:
        """Delete a project and its scenes.

        Args:
            project_id: Project identifier
            user_id: If given, only delete when the project belongs to this user

        Returns:
            True if deleted, False if not found
        """
        db = self._conn()
        query = "DELETE FROM projects WHERE id = ?"
        params: list[Any] = [project_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)

        async with self._write_lock:
            async with db.execute(f"{query} RETURNING id", params) as cursor:
                row = await cursor.fetchone()
            await db.commit()

        if row is not None:
            logger.info(f"Deleted project {project_id}")
            return True
        return False

    # =========================================================================
    # Profiles and credits
    # =========================================================================

    async def get_profile(self, user_id: str) -> Profile | None:
        db = self._conn()
        async with db.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return Profile(
            user_id=row["user_id"],
            credits=row["credits"],
            subscription_tier=SubscriptionTier(row["subscription_tier"]),
            display_name=row["display_name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def upsert_profile(
        self,
        user_id: str,
        credits: int,
        subscription_tier: SubscriptionTier = SubscriptionTier.FREE,
        display_name: str | None = None,
    ) -> Profile:
        """Create a profile or overwrite its credits and tier."""
        db = self._conn()
        now = _now()
        async with self._write_lock:
            await db.execute(
                """
                INSERT INTO profiles (user_id, credits, subscription_tier, display_name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    credits = excluded.credits,
                    subscription_tier = excluded.subscription_tier,
                    display_name = COALESCE(excluded.display_name, profiles.display_name),
                    updated_at = excluded.updated_at
                """,
                (user_id, credits, SubscriptionTier(subscription_tier).value, display_name, now, now),
            )
            await db.commit()
        return await self.get_profile(user_id)

    async def get_credits(self, user_id: str) -> int:
        """Read the current credits balance (0 when the profile does not exist)."""
        db = self._conn()
        async with db.execute("SELECT credits FROM profiles WHERE user_id = ?", (user_id,)) as cursor:
            row = await cursor.fetchone()
        return row["credits"] if row else 0

    async def debit_credits(self, user_id: str, amount: int) -> int:
        """Subtract credits in one statement, flooring the balance at zero.

        Returns:
            The balance after the debit

        Raises:
            PersistenceError: If the profile does not exist or the update fails
        """
        db = self._conn()
        async with self._write_lock:
            try:
                async with db.execute(
                    """
                    UPDATE profiles SET credits = MAX(credits - ?, 0), updated_at = ?
                    WHERE user_id = ? RETURNING credits
                    """,
                    (amount, _now(), user_id),
                ) as cursor:
                    row = await cursor.fetchone()
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Failed to debit credits for {user_id}: {e}") from e

        if row is None:
            raise PersistenceError(f"No profile for user {user_id}")
        return row["credits"]

    # =========================================================================
    # API keys
    # =========================================================================

    async def insert_api_key(self, api_key: ApiKey) -> ApiKey:
        db = self._conn()
        api_key.created_at = api_key.created_at or _now()
        async with self._write_lock:
            try:
                await db.execute(
                    """
                    INSERT INTO api_keys (id, user_id, name, key_hash, key_preview, is_active,
                        usage_count, last_used_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        api_key.id,
                        api_key.user_id,
                        api_key.name,
                        api_key.key_hash,
                        api_key.key_preview,
                        int(api_key.is_active),
                        api_key.usage_count,
                        api_key.last_used_at,
                        api_key.created_at,
                    ),
                )
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Failed to store API key: {e}") from e
        return api_key

    async def find_active_api_key(self, key_hash: str) -> ApiKey | None:
        """Find an active key record by digest."""
        db = self._conn()
        async with db.execute(
            "SELECT * FROM api_keys WHERE key_hash = ? AND is_active = 1", (key_hash,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_api_key(row) if row else None

    async def record_api_key_usage(self, key_id: str) -> None:
        """Increment a key's usage counter and stamp last use."""
        db = self._conn()
        async with self._write_lock:
            await db.execute(
                "UPDATE api_keys SET usage_count = usage_count + 1, last_used_at = ? WHERE id = ?",
                (_now(), key_id),
            )
            await db.commit()

    async def get_api_key(self, key_id: str) -> ApiKey | None:
        db = self._conn()
        async with db.execute("SELECT * FROM api_keys WHERE id = ?", (key_id,)) as cursor:
            row = await cursor.fetchone()
        return self._row_to_api_key(row) if row else None

    async def list_api_keys(self, user_id: str) -> list[ApiKey]:
        db = self._conn()
        async with db.execute(
            "SELECT * FROM api_keys WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_api_key(row) for row in rows]

    async def deactivate_api_key(self, key_id: str, user_id: str) -> bool:
        db = self._conn()
        async with self._write_lock:
            cursor = await db.execute(
                "UPDATE api_keys SET is_active = 0 WHERE id = ? AND user_id = ?", (key_id, user_id)
            )
            await db.commit()
        return cursor.rowcount > 0

    # =========================================================================
    # Row conversion
    # =========================================================================

    def _row_to_project(self, row: aiosqlite.Row) -> Project:
        script = None
        if row["script"]:
            try:
                script = json.loads(row["script"])
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse script JSON for project {row['id']}")
        return Project(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            prompt=row["prompt"],
            style=row["style"],
            aspect_ratio=row["aspect_ratio"],
            duration=row["duration"],
            status=row["status"],
            script=script,
            video_url=row["video_url"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_scene(self, row: aiosqlite.Row) -> Scene:
        return Scene(
            id=row["id"],
            project_id=row["project_id"],
            scene_number=row["scene_number"],
            description=row["description"],
            narration=row["narration"],
            duration=row["duration"],
            image_url=row["image_url"],
            audio_url=row["audio_url"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_api_key(self, row: aiosqlite.Row) -> ApiKey:
        return ApiKey(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            key_hash=row["key_hash"],
            key_preview=row["key_preview"],
            is_active=bool(row["is_active"]),
            usage_count=row["usage_count"],
            last_used_at=row["last_used_at"],
            created_at=row["created_at"],
        )
