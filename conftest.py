"""全局 pytest 配置 -- 临时 SQLite 数据库 fixture + 任务构造工具"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

# 测试统一使用的固定"当前时间"
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_task() -> Callable:
    """任务构造工厂，未指定字段使用合理默认值"""
    from taskpulse.core.models import Task

    counter = {"n": 0}

    def _make(**overrides) -> Task:
        counter["n"] += 1
        fields = {
            "task_id": f"task-{counter['n']:03d}",
            "user_id": "user-1",
            "title": f"Task {counter['n']}",
            "created_at": NOW,
            "updated_at": NOW,
        }
        fields.update(overrides)
        return Task(**fields)

    return _make


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from taskpulse.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path):
    """提供共享连接的 StoreGroup"""
    from taskpulse.core.store import create_store_group

    stores = await create_store_group(str(tmp_db_path))
    yield stores
    await stores.conn.close()
