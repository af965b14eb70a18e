"""TaskPulse Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .alert_store import SqliteAlertStore
from .policy_store import SqlitePolicyStore, SqliteProfileStore
from .protocols import AlertStore, TaskMutationPort, TaskStore
from .sqlite_init import init_db
from .task_store import InvalidTransitionError, SqliteTaskStore, TaskNotFoundError
from .transaction import (
    apply_split,
    mark_reminded,
    put_alert_batch,
    replace_user_tasks,
    write_scores,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        # 串行化共享连接上的多语句事务
        self.write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn)
        self.alert_store = SqliteAlertStore(conn)
        self.policy_store = SqlitePolicyStore(conn)
        self.profile_store = SqliteProfileStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteAlertStore",
    "SqlitePolicyStore",
    "SqliteProfileStore",
    "TaskStore",
    "TaskMutationPort",
    "AlertStore",
    "TaskNotFoundError",
    "InvalidTransitionError",
    "init_db",
    "apply_split",
    "mark_reminded",
    "put_alert_batch",
    "replace_user_tasks",
    "write_scores",
]
