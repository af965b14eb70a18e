"""SQLite 数据库初始化

PRAGMA 配置 + 四张表 DDL + 索引创建。
tasks / policies / profiles 以 JSON 文档形式存储（键值文档库），
alerts 拆列存储以便按用户、时间排序查询。
"""

import aiosqlite

# tasks 表 DDL：doc 为完整 Task JSON，status/updated_at 冗余列用于筛选
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id     TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'todo',
    updated_at  TEXT NOT NULL DEFAULT '',
    doc         TEXT NOT NULL DEFAULT '{}'
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_status ON tasks(user_id, status);",
]

# alerts 表 DDL：只允许修改 acknowledged
_ALERTS_DDL = """
CREATE TABLE IF NOT EXISTS alerts (
    alert_id      TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    task_id       TEXT NOT NULL,
    type          TEXT NOT NULL,
    severity      TEXT NOT NULL,
    message       TEXT NOT NULL DEFAULT '',
    ts            TEXT NOT NULL,
    acknowledged  INTEGER NOT NULL DEFAULT 0,
    metadata      TEXT NOT NULL DEFAULT '{}'
);
"""

_ALERTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_alerts_user_ts ON alerts(user_id, ts DESC);",
]

_POLICIES_DDL = """
CREATE TABLE IF NOT EXISTS policies (
    user_id     TEXT PRIMARY KEY,
    updated_at  TEXT NOT NULL,
    policy      TEXT NOT NULL DEFAULT '{}'
);
"""

_PROFILES_DDL = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id     TEXT PRIMARY KEY,
    profile     TEXT NOT NULL DEFAULT '{}'
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_ALERTS_DDL)
    await conn.execute(_POLICIES_DDL)
    await conn.execute(_PROFILES_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _ALERTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
