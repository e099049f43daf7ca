"""
SQLite-based occurrence sink for RanchCore.

This module implements the async persistence collaborator that
assigns ids and durability to generated occurrence drafts.
"""

import aiosqlite
import time
from typing import List, Optional
from ranchcore.core.models import ScheduledEvent
from ranchcore.settings import StorageConfig
from ranchcore.observability.logging_setup import get_logger

log = get_logger("ranchcore.events_store")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_id TEXT NOT NULL,
    parent_event_id TEXT,
    scheduled_date TEXT NOT NULL,
    status TEXT NOT NULL,
    payload TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_parent ON events(parent_event_id, scheduled_date);
"""

class SQLiteEventSink:
    """SQLite 기반 발생 인스턴스 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteEventSink 초기화: {path}")

    @classmethod
    def from_settings(cls, storage: StorageConfig) -> "SQLiteEventSink":
        """StorageConfig.events_db_path로 저장소를 만듭니다."""
        return cls(storage.events_db_path)

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info(f"SQLiteEventSink 스키마 초기화 완료: {self.path}")

    async def save(self, draft: ScheduledEvent) -> str:
        """
        초안을 저장하고 ID를 부여합니다.

        Args:
            draft: 발생 인스턴스 초안

        Returns:
            생성된 이벤트 ID
        """
        now = int(time.time())

        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "INSERT INTO events (subject_id, parent_event_id, scheduled_date, status, payload, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    draft.subject_id,
                    draft.parent_event_id,
                    draft.scheduled_date.isoformat(),
                    draft.status,
                    draft.model_dump_json(exclude={"id"}),
                    now,
                )
            )
            await db.commit()
            return str(cursor.lastrowid)

    @staticmethod
    def _row_to_event(row) -> ScheduledEvent:
        return ScheduledEvent.model_validate_json(row[1]).model_copy(update={"id": str(row[0])})

    async def get(self, event_id: str) -> Optional[ScheduledEvent]:
        """
        ID로 이벤트를 조회합니다.

        Returns:
            ScheduledEvent 또는 None
        """
        # 저장소 ID는 정수 행 번호
        if not str(event_id).isdecimal():
            return None
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT id, payload FROM events WHERE id = ?", (int(event_id),))
            row = await cursor.fetchone()
            return self._row_to_event(row) if row else None

    async def list_by_parent(self, parent_event_id: str) -> List[ScheduledEvent]:
        """
        기준 이벤트에서 생성된 발생 인스턴스를 예정일 순으로 조회합니다.

        Args:
            parent_event_id: 기준 이벤트 ID
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT id, payload FROM events WHERE parent_event_id = ? ORDER BY scheduled_date ASC, id ASC",
                (parent_event_id,)
            )
            rows = await cursor.fetchall()
            return [self._row_to_event(r) for r in rows]

    async def get_count(self) -> int:
        """
        현재 저장된 이벤트 수를 반환합니다.

        Returns:
            이벤트 수
        """
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM events")
            result = await cursor.fetchone()
            return result[0] if result else 0
