"""packages/core 测试配置 -- 核心层 fixture"""

import pytest_asyncio
from taskpulse.core.store import SqliteAlertStore, SqliteTaskStore


@pytest_asyncio.fixture
async def task_store(db_conn) -> SqliteTaskStore:
    return SqliteTaskStore(db_conn)


@pytest_asyncio.fixture
async def alert_store(db_conn) -> SqliteAlertStore:
    return SqliteAlertStore(db_conn)
