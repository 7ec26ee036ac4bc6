import logging
import time
from typing import List
from uuid import UUID

from asyncpg import Pool, PostgresError, UndefinedTableError

from models.plan_models import StudySession, StudySessionCreate
from utils.cache import cache, cached, CacheKeys
from utils.config import CacheConfig
from utils.logging import log_database_query

SESSION_COLUMNS = "id, user_id, subject, duration, date, completed, created_at"


class HistoryStoreError(Exception):
    """A study_sessions read or write failed"""

    def __init__(self, message: str, missing_table: bool = False):
        super().__init__(message)
        self.missing_table = missing_table


class HistoryRepository:
    """Append-only access to the study_sessions table, scoped by owner"""

    def __init__(self, db_pool: Pool):
        self.pool = db_pool
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.info("HistoryRepository initialized")

    def _ensure_uuid(self, value) -> UUID:
        if isinstance(value, UUID):
            return value
        return UUID(str(value))

    def _row_to_dict(self, row) -> dict:
        row_dict = dict(row)
        row_dict['id'] = str(row_dict['id'])
        row_dict['user_id'] = str(row_dict['user_id'])
        return row_dict

    def _wrap_error(self, action: str, owner_id: str, e: Exception) -> HistoryStoreError:
        self.logger.error(f"Failed to {action} for owner {owner_id}: {e}")
        return HistoryStoreError(str(e), missing_table=isinstance(e, UndefinedTableError))

    async def insert_session(self, owner_id: str, session: StudySessionCreate) -> StudySession:
        self.logger.info(
            f"Logging session for owner {owner_id}: subject={session.subject}, "
            f"duration={session.duration:.4f}h, date={session.date}, completed={session.completed}"
        )
        start_time = time.time()
        try:
            async with self.pool.acquire() as connection:
                async with connection.transaction():
                    row = await connection.fetchrow(
                        f"""INSERT INTO study_sessions (user_id, subject, duration, date, completed)
                        VALUES ($1, $2, $3, $4, $5) RETURNING {SESSION_COLUMNS}""",
                        self._ensure_uuid(owner_id),
                        session.subject,
                        session.duration,
                        session.date,
                        session.completed
                    )
        except (PostgresError, OSError, ValueError) as e:
            raise self._wrap_error("log study session", owner_id, e) from e

        log_database_query("INSERT", "study_sessions", (time.time() - start_time) * 1000, owner_id)
        await cache.clear_pattern(CacheKeys.owner_history(owner_id))

        record = StudySession(**self._row_to_dict(row))
        self.logger.info(f"Successfully logged session {record.id}")
        return record

    @cached(
        ttl=CacheConfig.HISTORY_CACHE_TTL,
        key_builder=lambda self, owner_id: CacheKeys.owner_history(owner_id)
    )
    async def _fetch_rows(self, owner_id: str) -> List[dict]:
        start_time = time.time()
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                f"""SELECT {SESSION_COLUMNS} FROM study_sessions
                WHERE user_id = $1
                ORDER BY date DESC, created_at DESC""",
                self._ensure_uuid(owner_id)
            )
        log_database_query("SELECT", "study_sessions", (time.time() - start_time) * 1000, owner_id)
        return [self._row_to_dict(row) for row in rows]

    async def list_sessions(self, owner_id: str) -> List[StudySession]:
        self.logger.debug(f"Fetching study history for: {owner_id}")
        try:
            rows = await self._fetch_rows(owner_id)
        except (PostgresError, OSError, ValueError) as e:
            raise self._wrap_error("fetch study history", owner_id, e) from e

        sessions = [StudySession(**row) for row in rows]
        self.logger.debug(f"Found {len(sessions)} sessions for owner {owner_id}")
        return sessions
