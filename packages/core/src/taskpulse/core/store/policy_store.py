"""PolicyStore / ProfileStore SQLite 实现

每用户一份 ThresholdPolicy 与 UserProfile，以 JSON 文档保存。
get_raw_policy 返回未校验的原始文档，由上层决定如何处理损坏的配置。
"""

import json
from datetime import datetime
from typing import Any

import aiosqlite

from ..models.policy import ThresholdPolicy, UserProfile


class SqlitePolicyStore:
    """ThresholdPolicy 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_raw_policy(self, user_id: str) -> dict[str, Any] | None:
        cursor = await self._conn.execute(
            "SELECT policy FROM policies WHERE user_id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def put_policy(
        self, user_id: str, policy: ThresholdPolicy, updated_at: datetime
    ) -> None:
        await self._conn.execute(
            """
            INSERT INTO policies (user_id, updated_at, policy) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                updated_at = excluded.updated_at,
                policy = excluded.policy
            """,
            (user_id, updated_at.isoformat(), policy.model_dump_json()),
        )


class SqliteProfileStore:
    """UserProfile 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_profile(self, user_id: str) -> UserProfile | None:
        cursor = await self._conn.execute(
            "SELECT profile FROM profiles WHERE user_id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return UserProfile.model_validate_json(row[0])

    async def put_profile(self, profile: UserProfile) -> None:
        await self._conn.execute(
            """
            INSERT INTO profiles (user_id, profile) VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET profile = excluded.profile
            """,
            (profile.user_id, profile.model_dump_json()),
        )
